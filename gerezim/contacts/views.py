from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from gerezim.core.utils import create_audit_log, field_changes, snapshot
from .filters import ContactFilter
from .models import Contact
from .serializers import ContactSerializer, InteractionSerializer

AUDITED_FIELDS = ('name', 'status', 'phone', 'source')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def contact_list_create(request):
    """List contacts (search, status, source filters) or create a new contact"""
    if request.method == 'GET':
        contact_filter = ContactFilter(request.query_params, queryset=Contact.objects.all())
        if not contact_filter.is_valid():
            return Response(contact_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = ContactSerializer(contact_filter.qs, many=True)
        return Response(serializer.data)

    serializer = ContactSerializer(data=request.data)
    if serializer.is_valid():
        contact = serializer.save(created_by=request.user)
        create_audit_log(
            request=request,
            action='create',
            model_name='Contact',
            object_id=contact.id,
            object_name=contact.name,
        )
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def contact_detail(request, pk):
    """Retrieve, update or delete a contact"""
    contact = get_object_or_404(Contact, pk=pk)

    if request.method == 'GET':
        serializer = ContactSerializer(contact)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        before = snapshot(contact, AUDITED_FIELDS)
        serializer = ContactSerializer(contact, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            changes = field_changes(before, snapshot(contact, AUDITED_FIELDS))
            if changes:
                create_audit_log(
                    request=request,
                    action='update',
                    model_name='Contact',
                    object_id=contact.id,
                    object_name=contact.name,
                    changes=changes
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        contact_id = contact.id
        contact_name = contact.name
        contact.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Contact',
            object_id=contact_id,
            object_name=contact_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def contact_interactions(request, pk):
    """List a contact's interactions (newest first) or record a new one"""
    contact = get_object_or_404(Contact, pk=pk)

    if request.method == 'GET':
        interactions = contact.interactions.select_related('created_by')
        serializer = InteractionSerializer(interactions, many=True)
        return Response(serializer.data)

    serializer = InteractionSerializer(data=request.data)
    if serializer.is_valid():
        serializer.save(contact=contact, created_by=request.user)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
