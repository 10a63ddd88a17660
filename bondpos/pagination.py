from rest_framework.pagination import PageNumberPagination


class OptionalPageNumberPagination(PageNumberPagination):
    """
    Page only when the client asks for a page; plain lists otherwise.
    ``?page=2&limit=25``
    """
    page_size = 50
    page_size_query_param = 'limit'
    max_page_size = 500

    def paginate_queryset(self, queryset, request, view=None):
        if self.page_query_param not in request.query_params:
            return None
        return super().paginate_queryset(queryset, request, view)


class HistoryPagination(PageNumberPagination):
    """Always paged, ten rows unless ``?limit=`` asks for more"""
    page_size = 10
    page_size_query_param = 'limit'
    max_page_size = 500
