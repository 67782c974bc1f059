import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from gerezim.core.exceptions import GerezimError
from gerezim.core.notifications import NotificationCollector
from gerezim.core.permissions import IsAdminRole
from gerezim.core.utils import create_audit_log, error_response
from .board import PipelineBoard, stage_label
from .clients import OpportunityClient
from .models import Opportunity, STAGE_ORDER
from .serializers import CardSerializer, CardMoveSerializer, OpportunitySerializer

logger = logging.getLogger(__name__)


def open_board(request, notifications):
    return PipelineBoard(OpportunityClient(user=request.user), notify=notifications)


def board_payload(board, notifications):
    columns = board.columns()
    return {
        'stages': [
            {
                'id': stage,
                'label': stage_label(stage),
                'count': len(columns[stage]),
                'cards': CardSerializer(columns[stage], many=True).data,
            }
            for stage in STAGE_ORDER
        ],
        'notifications': notifications.as_list(),
    }


def failure_response(error, notifications):
    response = error_response(error)
    response.data['notifications'] = notifications.as_list()
    return response


def form_data(request):
    """Request body as a plain dict (form posts arrive as a QueryDict)"""
    if hasattr(request.data, 'dict'):
        return request.data.dict()
    return dict(request.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def pipeline_board(request):
    """Every opportunity grouped by pipeline stage, in funnel order"""
    notifications = NotificationCollector()
    with open_board(request, notifications) as board:
        try:
            board.load_board()
        except GerezimError as e:
            return failure_response(e, notifications)
        return Response(board_payload(board, notifications))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def opportunity_list_create(request):
    """
    GET: opportunities, filterable by ?stage=, ?status= and ?category=
    POST: create a card in the stage given by 'stage' (default: Novo)
    """
    if request.method == 'GET':
        queryset = Opportunity.objects.select_related('contact', 'product')
        for param, field in (('stage', 'pipeline_stage'), ('status', 'status'), ('category', 'category')):
            value = request.query_params.get(param)
            if value:
                queryset = queryset.filter(**{field: value})
        return Response(OpportunitySerializer(queryset, many=True).data)

    fields = form_data(request)
    target_stage = fields.pop('stage', None) or fields.pop('pipeline_stage', None) or STAGE_ORDER[0]
    notifications = NotificationCollector()
    with open_board(request, notifications) as board:
        try:
            card = board.create_card(target_stage, fields)
        except GerezimError as e:
            return failure_response(e, notifications)

        create_audit_log(
            request=request,
            action='create',
            model_name='Opportunity',
            object_id=card.id,
            object_name=card.title,
            changes={'stage': card.pipeline_stage, 'value': str(card.value)}
        )
        payload = board_payload(board, notifications)
        payload['card'] = CardSerializer(card).data
        return Response(payload, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def opportunity_detail(request, pk):
    """Retrieve, edit or delete an opportunity"""
    opportunity = get_object_or_404(Opportunity.objects.select_related('contact', 'product'), pk=pk)

    if request.method == 'GET':
        return Response(OpportunitySerializer(opportunity).data)

    notifications = NotificationCollector()
    with open_board(request, notifications) as board:
        try:
            if request.method == 'PATCH':
                fields = form_data(request)
                board.update_card(pk, fields)
            else:
                board.delete_card(pk)
        except GerezimError as e:
            return failure_response(e, notifications)

        if request.method == 'PATCH':
            create_audit_log(
                request=request,
                action='update',
                model_name='Opportunity',
                object_id=pk,
                object_name=opportunity.title,
                changes={key: str(value) for key, value in fields.items()}
            )
        else:
            create_audit_log(
                request=request,
                action='delete',
                model_name='Opportunity',
                object_id=pk,
                object_name=opportunity.title,
            )
        return Response(board_payload(board, notifications))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def opportunity_move(request, pk):
    """Move a card to another stage ({stage}). Moving to the current stage does nothing."""
    opportunity = get_object_or_404(Opportunity, pk=pk)
    serializer = CardMoveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    target_stage = serializer.validated_data['stage']

    notifications = NotificationCollector()
    with open_board(request, notifications) as board:
        try:
            board.load_board()
            board.start_drag(pk)
            board.drag_enter(target_stage)
            moved = board.drop(target_stage)
        except GerezimError as e:
            return failure_response(e, notifications)

        if moved:
            create_audit_log(
                request=request,
                action='stage_move',
                model_name='Opportunity',
                object_id=pk,
                object_name=opportunity.title,
                changes={'pipeline_stage': {'old': opportunity.pipeline_stage, 'new': target_stage}}
            )
        payload = board_payload(board, notifications)
        payload['moved'] = moved
        return Response(payload)
