from rest_framework.permissions import BasePermission


class IsAdminRole(BasePermission):
    """Only users with the 'adm' role (or superusers) may access the pipeline and settings"""
    message = 'Acesso restrito a administradores.'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_admin)
