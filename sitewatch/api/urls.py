"""
Sitewatch API URL Configuration

Endpoints:
- POST   /api/v1/generate/                         - Queue a generation
- GET    /api/v1/generate/recent/                  - Recent generations
- GET    /api/v1/generate/<job_id>/                - Generation status
- DELETE /api/v1/generate/<job_id>/                - Delete a generation
- GET    /api/v1/generate/<job_id>/download/       - Download llms.txt / llms-full.txt
- GET    /api/v1/watch/                            - List watched URLs
- POST   /api/v1/watch/                            - Watch a URL
- DELETE /api/v1/watch/<id>/                       - Unwatch a URL
- GET    /api/v1/watch/<id>/generations/           - Generation history
- POST   /api/v1/watch/<id>/regenerate/            - Regenerate now
"""

from django.urls import path

from sitewatch.api.views import (
    generate,
    recent_generations,
    generation_detail,
    download_generation,
    watch_list,
    unwatch,
    watched_url_generations,
    regenerate,
)

app_name = 'sitewatch_api'

urlpatterns = [
    # Generation endpoints
    path('generate/', generate, name='generate'),
    path('generate/recent/', recent_generations, name='recent_generations'),
    path('generate/<uuid:job_id>/', generation_detail, name='generation_detail'),
    path('generate/<uuid:job_id>/download/', download_generation, name='download_generation'),

    # Watch list endpoints
    path('watch/', watch_list, name='watch_list'),
    path('watch/<int:pk>/', unwatch, name='unwatch'),
    path('watch/<int:pk>/generations/', watched_url_generations, name='watched_url_generations'),
    path('watch/<int:pk>/regenerate/', regenerate, name='regenerate'),
]
