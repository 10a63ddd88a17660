# =============== MIDDLEWARE FOR BRANCH CONTEXT ===============
import uuid


class BranchMiddleware:
    """Middleware to set the branch selected by the client"""
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        # Header first, then query string
        branch_id = request.META.get('HTTP_X_BRANCH_ID')
        if not branch_id:
            branch_id = request.GET.get('branch_id') or request.GET.get('branchId')

        request.branch_id = None
        if branch_id and branch_id not in ('all', 'null'):
            try:
                request.branch_id = uuid.UUID(str(branch_id))
            except ValueError:
                request.branch_id = None

        response = self.get_response(request)
        return response
