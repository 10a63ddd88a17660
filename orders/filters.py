from datetime import datetime, time, timedelta

import django_filters
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from .models import Order

DATE_FILTERS = ('today', 'yesterday', 'this-week', 'this-month', 'last-month', 'custom', 'all')


def _parse_date(value, field):
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError({field: f"Invalid date '{value}', expected YYYY-MM-DD"})


def _start_of(day):
    return timezone.make_aware(datetime.combine(day, time.min))


def date_range(date_filter, start_date=None, end_date=None):
    """
    Resolve a named period into a [start, end) datetime pair.
    Returns (None, None) for 'all' or when nothing was asked for.
    """
    if not date_filter or date_filter == 'all':
        if start_date or end_date:
            date_filter = 'custom'
        else:
            return None, None

    today = timezone.localdate()

    if date_filter == 'today':
        return _start_of(today), _start_of(today + timedelta(days=1))
    if date_filter == 'yesterday':
        return _start_of(today - timedelta(days=1)), _start_of(today)
    if date_filter == 'this-week':
        monday = today - timedelta(days=today.weekday())
        return _start_of(monday), _start_of(today + timedelta(days=1))
    if date_filter == 'this-month':
        return _start_of(today.replace(day=1)), _start_of(today + timedelta(days=1))
    if date_filter == 'last-month':
        first_this_month = today.replace(day=1)
        first_last_month = (first_this_month - timedelta(days=1)).replace(day=1)
        return _start_of(first_last_month), _start_of(first_this_month)
    if date_filter == 'custom':
        start = _start_of(_parse_date(start_date, 'start_date')) if start_date else None
        end = _start_of(_parse_date(end_date, 'end_date') + timedelta(days=1)) if end_date else None
        return start, end

    raise ValidationError({'date_filter': f"Unknown date filter '{date_filter}'"})


def filter_by_period(queryset, params, field='created_at'):
    start, end = date_range(params.get('date_filter'), params.get('start_date'), params.get('end_date'))
    if start is not None:
        queryset = queryset.filter(**{f"{field}__gte": start})
    if end is not None:
        queryset = queryset.filter(**{f"{field}__lt": end})
    return queryset


class OrderFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    date_filter = django_filters.ChoiceFilter(
        choices=[(name, name) for name in DATE_FILTERS], method='filter_date'
    )
    start_date = django_filters.CharFilter(method='filter_noop')
    end_date = django_filters.CharFilter(method='filter_noop')
    customer = django_filters.NumberFilter(field_name='customer_id')
    table = django_filters.NumberFilter(field_name='table_id')

    class Meta:
        model = Order
        fields = ['status', 'payment_status', 'order_source', 'dining_option', 'payment_method']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(order_number__icontains=value)
            | Q(customer_name__icontains=value)
            | Q(customer_phone__icontains=value)
            | Q(table__table_number__icontains=value)
        )

    def filter_date(self, queryset, name, value):
        return filter_by_period(queryset, {
            'date_filter': value,
            'start_date': self.data.get('start_date'),
            'end_date': self.data.get('end_date'),
        })

    def filter_noop(self, queryset, name, value):
        # consumed by filter_date
        return queryset
