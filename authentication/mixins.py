from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework.exceptions import PermissionDenied

from .models import Branch


def resolve_branch_id(request):
    """
    Effective branch for a request: branch accounts are pinned to their own
    branch, everyone else uses what BranchMiddleware picked up (None = all).
    """
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated and user.role == user.ROLE_BRANCH:
        return user.branch_id
    return getattr(request, 'branch_id', None)


def get_branch_object(request, queryset, pk):
    """Fetch a row owned by the caller's branch or shared by all branches"""
    branch_id = resolve_branch_id(request)
    if branch_id is not None:
        queryset = queryset.filter(Q(branch_id=branch_id) | Q(branch__isnull=True))
    return get_object_or_404(queryset, pk=pk)


class BranchContextMixin:
    """Mixin to filter querysets by the active branch and stamp it on create"""
    branch_field = 'branch'
    include_shared = True

    def get_branch_id(self):
        if not hasattr(self.request, 'active_branch_id'):
            branch_id = resolve_branch_id(self.request)
            if branch_id is not None and not Branch.objects.filter(id=branch_id, is_active=True).exists():
                raise PermissionDenied("Selected branch does not exist or is inactive.")
            self.request.active_branch_id = branch_id
        return self.request.active_branch_id

    def get_queryset(self):
        """Filter queryset by the active branch"""
        queryset = super().get_queryset()
        branch_id = self.get_branch_id()
        if branch_id is None:
            return queryset
        condition = Q(**{f"{self.branch_field}_id": branch_id})
        if self.include_shared:
            condition |= Q(**{f"{self.branch_field}__isnull": True})
        return queryset.filter(condition)

    def perform_create(self, serializer):
        """Stamp the active branch unless the payload chose one"""
        branch_id = self.get_branch_id()
        if branch_id is not None and not serializer.validated_data.get(self.branch_field):
            serializer.save(**{f"{self.branch_field}_id": branch_id})
        else:
            serializer.save()

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['request'] = self.request
        return context
