"""
Sitewatch API Views

REST endpoints for llms.txt generation and the watch list.

This module provides endpoints for:
- Submitting a generation job and polling its status
- Downloading and deleting generated files
- Managing watched URLs and their generation history

All endpoints require authentication; endpoints that start crawls or change
the watch list are rate limited.
"""

import logging

from django.http import HttpResponse
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from sitewatch.api.throttling import GenerationThrottle, WatchListThrottle
from sitewatch.exceptions import (
    DuplicateJobError,
    GenerationInProgress,
    GenerationNotFound,
    InvalidURLError,
    WatchedUrlNotFound,
)
from sitewatch.models import GenerationStatus
from sitewatch.services import generation_service
from sitewatch.services.llms_builder import LLMS_FILE, LLMS_FULL_FILE

logger = logging.getLogger(__name__)

# ?file= values accepted by the download endpoint
DOWNLOAD_FILES = {
    'llms': LLMS_FILE,
    'full': LLMS_FULL_FILE,
}

MAX_LIST_LIMIT = 100


def _limit_param(request, default: int) -> int:
    try:
        limit = int(request.query_params.get('limit', default))
    except (TypeError, ValueError):
        return default
    return max(1, min(limit, MAX_LIST_LIMIT))


def _watched_url_payload(watched) -> dict:
    payload = {
        'id': watched.pk,
        'url': watched.url,
        'is_active': watched.is_active,
        'check_interval_minutes': watched.check_interval_minutes,
        'created_at': watched.created_at.isoformat(),
        'last_checked_at': watched.last_checked_at.isoformat() if watched.last_checked_at else None,
        'next_check_due_at': (
            watched.next_check_due_at.isoformat() if watched.next_check_due_at else None
        ),
        'signature_method': watched.signature_method or None,
    }
    recent = getattr(watched, 'recent_generations', None)
    if recent is not None:
        payload['recent_generations'] = [generation.to_snapshot() for generation in recent]
    return payload


def _not_found(error) -> Response:
    return Response({'error': str(error)}, status=status.HTTP_404_NOT_FOUND)


# ============================================================
# Generation Endpoints
# ============================================================

@extend_schema(
    tags=['Generation'],
    summary='Generate llms.txt for a URL',
    description='''
    Queue a crawl of the given site and regenerate its llms.txt and
    llms-full.txt. Returns immediately with the job id; poll the status
    endpoint for progress.
    ''',
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'url': {'type': 'string', 'format': 'uri', 'description': 'Site to crawl'},
                'job_id': {'type': 'string', 'format': 'uuid', 'description': 'Optional caller-supplied job id'},
                'max_pages': {'type': 'integer', 'minimum': 1},
                'max_depth': {'type': 'integer', 'minimum': 1},
            },
            'required': ['url'],
        }
    },
    responses={
        202: {
            'description': 'Generation queued',
            'content': {
                'application/json': {
                    'example': {
                        'job_id': '3f2b8a9e-6f1d-4c55-9d7e-2b1f0c9a4e11',
                        'status': 'pending',
                    }
                }
            }
        },
        400: {'description': 'Invalid URL or options'},
        409: {'description': 'Job id already in use'},
        503: {'description': 'Generation could not be queued'},
    },
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([GenerationThrottle])
def generate(request):
    """
    Submit a generation job.

    Request body:
    {
        "url": "https://example.com",
        "job_id": "...",        // Optional
        "max_pages": 50,        // Optional
        "max_depth": 3          // Optional
    }
    """
    url = request.data.get('url')
    if not url:
        return Response(
            {'error': 'url is required'},
            status=status.HTTP_400_BAD_REQUEST
        )

    options = {
        key: request.data.get(key)
        for key in generation_service.OPTION_KEYS
        if request.data.get(key) is not None
    }

    try:
        generation = generation_service.request_generation(
            url,
            options=options,
            job_id=request.data.get('job_id'),
        )
    except InvalidURLError:
        return Response(
            {'error': 'Invalid URL format'},
            status=status.HTTP_400_BAD_REQUEST
        )
    except (TypeError, ValueError) as e:
        return Response(
            {'error': f'Invalid options: {e}'},
            status=status.HTTP_400_BAD_REQUEST
        )
    except DuplicateJobError as e:
        return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
    except Exception as e:
        logger.error(f"Could not queue generation for {url}: {e}")
        return Response(
            {'error': 'Generation could not be queued'},
            status=status.HTTP_503_SERVICE_UNAVAILABLE
        )

    return Response(
        {'job_id': str(generation.job_id), 'status': generation.status},
        status=status.HTTP_202_ACCEPTED
    )


@extend_schema(
    tags=['Generation'],
    summary='Get or delete a generation',
    description='''
    GET returns the generation's status, timing and crawl statistics.
    DELETE removes its generated files and marks it deleted; running
    generations cannot be deleted.
    ''',
    responses={
        200: {'description': 'Generation snapshot'},
        404: {'description': 'Generation not found'},
        409: {'description': 'Generation is still running'},
    },
)
@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def generation_detail(request, job_id):
    """Status and deletion of one generation."""
    try:
        if request.method == 'DELETE':
            generation = generation_service.delete_generation(job_id)
        else:
            generation = generation_service.get_generation_status(job_id)
    except GenerationNotFound as e:
        return _not_found(e)
    except GenerationInProgress as e:
        return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)

    return Response(generation.to_snapshot())


@extend_schema(
    tags=['Generation'],
    summary='Download a generated file',
    parameters=[
        OpenApiParameter(
            name='file',
            type=OpenApiTypes.STR,
            enum=list(DOWNLOAD_FILES),
            default='llms',
            description='llms for llms.txt, full for llms-full.txt',
        ),
    ],
    responses={
        (200, 'text/plain'): OpenApiTypes.STR,
        400: {'description': 'Generation not completed or unknown file'},
        404: {'description': 'Generation or file not found'},
    },
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def download_generation(request, job_id):
    """Download llms.txt or llms-full.txt of a completed generation."""
    name = DOWNLOAD_FILES.get(request.query_params.get('file', 'llms'))
    if name is None:
        return Response(
            {'error': f"file must be one of: {', '.join(DOWNLOAD_FILES)}"},
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        generation = generation_service.get_generation_status(job_id)
        if generation.status != GenerationStatus.COMPLETED:
            return Response(
                {'error': f'Generation is {generation.status}; no files to download'},
                status=status.HTTP_400_BAD_REQUEST
            )
        content = generation_service.read_artifact(job_id, name)
    except GenerationNotFound as e:
        return _not_found(e)
    except FileNotFoundError:
        return Response(
            {'error': f'{name} not found for this generation'},
            status=status.HTTP_404_NOT_FOUND
        )

    response = HttpResponse(content, content_type='text/plain; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="{name}"'
    return response


@extend_schema(
    tags=['Generation'],
    summary='List recent generations',
    parameters=[
        OpenApiParameter(name='limit', type=OpenApiTypes.INT, default=50),
    ],
    responses={200: {'description': 'Most recent generations first'}},
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def recent_generations(request):
    """Latest generations across all URLs."""
    generations = generation_service.list_recent_generations(
        limit=_limit_param(request, default=50)
    )
    return Response({
        'generations': [generation.to_snapshot() for generation in generations],
    })


# ============================================================
# Watch List Endpoints
# ============================================================

@extend_schema(
    tags=['Watch'],
    summary='List or add watched URLs',
    description='''
    GET lists active watched URLs with their latest generations.
    POST starts watching a URL (or reactivates it). The first check runs
    on the next scheduler tick.
    ''',
    request={
        'application/json': {
            'type': 'object',
            'properties': {
                'url': {'type': 'string', 'format': 'uri'},
                'check_interval_minutes': {'type': 'integer', 'minimum': 1, 'default': 60},
            },
            'required': ['url'],
        }
    },
    responses={
        200: {'description': 'Watched URLs'},
        201: {'description': 'URL is now watched'},
        400: {'description': 'Invalid URL or interval'},
    },
)
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([WatchListThrottle])
def watch_list(request):
    """Watched URLs."""
    if request.method == 'GET':
        watched_urls = generation_service.list_watched_urls()
        return Response({
            'watched_urls': [_watched_url_payload(watched) for watched in watched_urls],
        })

    url = request.data.get('url')
    if not url:
        return Response(
            {'error': 'url is required'},
            status=status.HTTP_400_BAD_REQUEST
        )

    interval = request.data.get('check_interval_minutes')
    try:
        watched = generation_service.watch_url(
            url,
            check_interval_minutes=int(interval) if interval is not None else None,
        )
    except InvalidURLError:
        return Response(
            {'error': 'Invalid URL format'},
            status=status.HTTP_400_BAD_REQUEST
        )
    except (TypeError, ValueError) as e:
        return Response(
            {'error': f'Invalid check_interval_minutes: {e}'},
            status=status.HTTP_400_BAD_REQUEST
        )

    return Response(_watched_url_payload(watched), status=status.HTTP_201_CREATED)


@extend_schema(
    tags=['Watch'],
    summary='Stop watching a URL',
    responses={
        200: {'description': 'URL is no longer watched'},
        404: {'description': 'Watched URL not found'},
    },
)
@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
@throttle_classes([WatchListThrottle])
def unwatch(request, pk):
    """Deactivate a watched URL. Its generations are kept."""
    try:
        watched = generation_service.unwatch_url(pk)
    except WatchedUrlNotFound as e:
        return _not_found(e)

    return Response(_watched_url_payload(watched))


@extend_schema(
    tags=['Watch'],
    summary='Generation history of a watched URL',
    parameters=[
        OpenApiParameter(name='limit', type=OpenApiTypes.INT, default=10),
    ],
    responses={
        200: {'description': 'Generations, most recent first'},
        404: {'description': 'Watched URL not found'},
    },
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def watched_url_generations(request, pk):
    """Generations of one watched URL."""
    try:
        generations = generation_service.list_generations_for_url(
            pk, limit=_limit_param(request, default=10)
        )
    except WatchedUrlNotFound as e:
        return _not_found(e)

    return Response({
        'watched_url_id': pk,
        'generations': [generation.to_snapshot() for generation in generations],
    })


@extend_schema(
    tags=['Watch'],
    summary='Regenerate a watched URL now',
    responses={
        202: {'description': 'Generation queued'},
        404: {'description': 'Watched URL not found'},
        503: {'description': 'Generation could not be queued'},
    },
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([GenerationThrottle])
def regenerate(request, pk):
    """Queue a manual generation for a watched URL."""
    try:
        generation = generation_service.request_regeneration(pk)
    except WatchedUrlNotFound as e:
        return _not_found(e)
    except Exception as e:
        logger.error(f"Could not queue regeneration for watched URL {pk}: {e}")
        return Response(
            {'error': 'Generation could not be queued'},
            status=status.HTTP_503_SERVICE_UNAVAILABLE
        )

    return Response(
        {'job_id': str(generation.job_id), 'status': generation.status},
        status=status.HTTP_202_ACCEPTED
    )
