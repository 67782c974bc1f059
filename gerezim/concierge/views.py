import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from gerezim.core.exceptions import ValidationError, WebhookError
from gerezim.core.models import Setting
from gerezim.core.permissions import IsAdminRole
from gerezim.core.utils import create_audit_log, error_response
from .models import ConciergeFolder, ConciergeConversation, ConciergeMessage
from .serializers import (
    ConciergeFolderSerializer, ConciergeConversationSerializer, ConciergeMessageSerializer,
    FolderReorderSerializer, WebhookSettingSerializer,
)
from .webhook import WEBHOOK_SETTING_KEY, WebhookClient

logger = logging.getLogger(__name__)


# Folder views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def folder_list_create(request):
    """List folders by position, or create one at the end"""
    if request.method == 'GET':
        serializer = ConciergeFolderSerializer(ConciergeFolder.objects.all(), many=True)
        return Response(serializer.data)

    serializer = ConciergeFolderSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save(position=ConciergeFolder.objects.count(), created_by=request.user)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def folder_detail(request, pk):
    """Rename or delete a folder. Its conversations move back to the root."""
    folder = get_object_or_404(ConciergeFolder, pk=pk)

    if request.method == 'PATCH':
        serializer = ConciergeFolderSerializer(folder, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        folder.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def folder_reorder(request):
    """Set folder positions from an ordered list of ids ({ids: [...]})"""
    serializer = FolderReorderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    ids = serializer.validated_data['ids']

    folders = ConciergeFolder.objects.in_bulk(ids)
    missing = [folder_id for folder_id in ids if folder_id not in folders]
    if missing:
        return Response({'error': f"Pastas não encontradas: {missing}"}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        for position, folder_id in enumerate(ids):
            folder = folders[folder_id]
            folder.position = position
        ConciergeFolder.objects.bulk_update(folders.values(), ['position'])
    return Response(ConciergeFolderSerializer(ConciergeFolder.objects.all(), many=True).data)


# Conversation views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def conversation_list_create(request):
    """List conversations (most recent first, ?folder= to filter) or start a new one"""
    if request.method == 'GET':
        queryset = ConciergeConversation.objects.all()
        folder = request.query_params.get('folder')
        if folder == 'none':
            queryset = queryset.filter(folder__isnull=True)
        elif folder:
            queryset = queryset.filter(folder_id=folder)
        return Response(ConciergeConversationSerializer(queryset, many=True).data)

    serializer = ConciergeConversationSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save(created_by=request.user)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def conversation_detail(request, pk):
    """Retrieve, rename / move to another folder (PATCH {title, folder}) or delete a conversation"""
    conversation = get_object_or_404(ConciergeConversation, pk=pk)

    if request.method == 'GET':
        return Response(ConciergeConversationSerializer(conversation).data)
    elif request.method == 'PATCH':
        serializer = ConciergeConversationSerializer(conversation, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        conversation.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


def get_webhook_client():
    url = Setting.get_value(WEBHOOK_SETTING_KEY, '')
    if not url:
        raise ValidationError('Configure a URL do Webhook primeiro!')
    return WebhookClient(url)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def conversation_messages(request, pk):
    """
    GET: messages of the conversation, oldest first
    POST {content}: store the user's message, forward it to the webhook and store the reply
    """
    conversation = get_object_or_404(ConciergeConversation, pk=pk)

    if request.method == 'GET':
        return Response(ConciergeMessageSerializer(conversation.messages.all(), many=True).data)

    content = (request.data.get('content') or request.data.get('message') or '').strip()
    if not content:
        return Response({'error': 'Digite uma mensagem'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        client = get_webhook_client()
    except ValidationError as e:
        return error_response(e)

    user_message = ConciergeMessage.objects.create(conversation=conversation, content=content, sender='user')
    conversation.save(update_fields=['updated_at'])

    payload = {
        'url': client.url,
        'message': content,
        'conversation_id': conversation.id,
        'client_id': request.user.id,
        'user_email': request.user.email,
        'timestamp': timezone.now().isoformat(),
    }
    try:
        reply = client.send(payload)
    except WebhookError as e:
        logger.error(f"Concierge message {user_message.id} not answered: {e.message}")
        response = error_response(e)
        response.data['user_message'] = ConciergeMessageSerializer(user_message).data
        return response
    finally:
        create_audit_log(
            request=request,
            action='webhook_call',
            model_name='ConciergeConversation',
            object_id=conversation.id,
            object_name=conversation.title,
        )

    bot_message = None
    if reply:
        bot_message = ConciergeMessage.objects.create(conversation=conversation, content=reply, sender='bot')

    return Response({
        'user_message': ConciergeMessageSerializer(user_message).data,
        'bot_message': ConciergeMessageSerializer(bot_message).data if bot_message else None,
    }, status=status.HTTP_201_CREATED)


# Settings and proxy
@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def webhook_settings(request):
    """Read or (admins only) change the concierge webhook URL"""
    if request.method == 'GET':
        return Response({'url': Setting.get_value(WEBHOOK_SETTING_KEY, '')})

    if not request.user.is_admin:
        return Response({'error': IsAdminRole.message}, status=status.HTTP_403_FORBIDDEN)
    serializer = WebhookSettingSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    url = serializer.validated_data['url']
    Setting.set_value(WEBHOOK_SETTING_KEY, url, 'URL do webhook do concierge')
    logger.info(f"Concierge webhook URL changed by user {request.user.id}")
    return Response({'url': url})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def webhook_proxy(request):
    """
    Forward {url, ...payload} to url and relay the answer.
    Non-JSON answers come back as {message: text}; upstream errors keep their status.
    """
    payload = dict(request.data)
    url = payload.pop('url', None)
    if not url:
        return Response({'error': 'URL is required'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        data = WebhookClient(url).post(payload)
    except WebhookError as e:
        upstream_status = getattr(e, 'upstream_status', None)
        if upstream_status is not None:
            return Response(e.upstream_body, status=upstream_status)
        return error_response(e)
    return Response(data)
