import logging
from rest_framework import status
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from gerezim.core.exceptions import GerezimError
from gerezim.core.notifications import NotificationCollector
from gerezim.core.utils import create_audit_log, error_response, parse_optional_id
from .clients import InsumoClient
from .models import Insumo
from .serializers import (
    InsumoSerializer, InsumoCreateSerializer, InsumoRenameSerializer, InsumoMoveSerializer
)
from .tree import TreeStore

logger = logging.getLogger(__name__)


def open_tree(request, notifications):
    return TreeStore(InsumoClient(user=request.user), notify=notifications)


def tree_payload(store, notifications, nodes=None):
    """Current folder, breadcrumb and listing, as returned by every insumos endpoint"""
    return {
        'folder': InsumoSerializer(store.current_folder).data if store.current_folder else None,
        'breadcrumb': InsumoSerializer(store.breadcrumb, many=True).data,
        'results': InsumoSerializer(store.nodes if nodes is None else nodes, many=True).data,
        'notifications': notifications.as_list(),
    }


def failure_response(error, notifications):
    response = error_response(error)
    response.data['notifications'] = notifications.as_list()
    return response


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@parser_classes([JSONParser, MultiPartParser, FormParser])
def insumo_list_create(request):
    """
    GET: children of ?folder= (root when omitted), optionally filtered by ?search=
    POST: create a folder (mode=folder) or upload a file (mode=file, multipart 'file')
    """
    notifications = NotificationCollector()

    if request.method == 'GET':
        with open_tree(request, notifications) as store:
            try:
                folder_id = parse_optional_id(request.query_params.get('folder'))
                if folder_id is None:
                    store.refresh()
                else:
                    store.navigate_into(folder_id)
            except GerezimError as e:
                return failure_response(e, notifications)
            nodes = store.search(request.query_params.get('search', ''))
            return Response(tree_payload(store, notifications, nodes))

    serializer = InsumoCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    with open_tree(request, notifications) as store:
        try:
            if data['parent'] is not None:
                store.navigate_into(data['parent'])
            if data['mode'] == 'folder':
                node = store.create_folder(data['parent'], data['title'])
            else:
                node = store.create_file(
                    data['parent'], data['title'], data['file'],
                    description=data['description'], product_id=data['product']
                )
        except GerezimError as e:
            return failure_response(e, notifications)

        create_audit_log(
            request=request,
            action='create' if node.is_folder else 'file_upload',
            model_name='Insumo',
            object_id=node.id,
            object_name=node.title,
            changes={'parent': node.parent_id, 'file_url': node.file_url}
        )
        payload = tree_payload(store, notifications)
        payload['node'] = InsumoSerializer(node).data
        return Response(payload, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def insumo_detail(request, pk):
    """Retrieve, rename (PATCH {title}) or delete an insumo"""
    insumo = get_object_or_404(Insumo.objects.select_related('product'), pk=pk)

    if request.method == 'GET':
        return Response(InsumoSerializer(insumo).data)

    notifications = NotificationCollector()
    if request.method == 'PATCH':
        serializer = InsumoRenameSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with open_tree(request, notifications) as store:
        try:
            if insumo.parent_id is not None:
                store.navigate_into(insumo.parent_id)
            if request.method == 'PATCH':
                store.rename(pk, serializer.validated_data['title'])
            else:
                store.delete(pk)
        except GerezimError as e:
            return failure_response(e, notifications)

        if request.method == 'PATCH':
            create_audit_log(
                request=request,
                action='update',
                model_name='Insumo',
                object_id=pk,
                object_name=serializer.validated_data['title'].strip(),
                changes={'title': {'old': insumo.title, 'new': serializer.validated_data['title'].strip()}}
            )
        else:
            create_audit_log(
                request=request,
                action='delete',
                model_name='Insumo',
                object_id=pk,
                object_name=insumo.title,
            )
        return Response(tree_payload(store, notifications))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def insumo_move(request, pk):
    """Move an insumo into another folder ({parent: id}, null for the root)"""
    insumo = get_object_or_404(Insumo, pk=pk)
    serializer = InsumoMoveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    new_parent_id = serializer.validated_data['parent']

    notifications = NotificationCollector()
    with open_tree(request, notifications) as store:
        try:
            if insumo.parent_id is not None:
                store.navigate_into(insumo.parent_id)
            moved = store.move(pk, new_parent_id)
        except GerezimError as e:
            return failure_response(e, notifications)

        if moved:
            create_audit_log(
                request=request,
                action='node_move',
                model_name='Insumo',
                object_id=pk,
                object_name=insumo.title,
                changes={'parent': {'old': insumo.parent_id, 'new': new_parent_id}}
            )
        payload = tree_payload(store, notifications)
        payload['moved'] = moved
        return Response(payload)
