import django_filters

from modules.orders.models import Order


class OrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name="status", lookup_expr="iexact")
    target_kind = django_filters.CharFilter(field_name="target_kind", lookup_expr="iexact")
    merchant_reference = django_filters.CharFilter(field_name="receipt__merchant_reference")
    order_number = django_filters.CharFilter(field_name="order_number")
    seller = django_filters.CharFilter(field_name="seller_id")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")

    class Meta:
        model = Order
        fields = [
            "status",
            "target_kind",
            "merchant_reference",
            "order_number",
            "seller",
            "start_date",
            "end_date",
        ]
