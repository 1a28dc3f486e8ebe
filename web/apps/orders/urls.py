from django.urls import path

from .views import (
    EmailSettingsTestView,
    ExportOrdersView,
    OrdersCollectionView,
    PaymentWebhookView,
    ProcessOrderView,
    RecentOrdersView,
    RetrieveOrderView,
    SettingsSectionView,
    SettingsView,
    StatsView,
)

app_name = "orders"

urlpatterns = [
    path("orders/", OrdersCollectionView.as_view(), name="orders-collection"),  # GET list / POST create
    path("orders/recent/", RecentOrdersView.as_view(), name="orders-recent"),
    path("orders/export/", ExportOrdersView.as_view(), name="orders-export"),
    path("orders/<int:oid>/", RetrieveOrderView.as_view(), name="orders-detail"),
    path("orders/<int:oid>/process/", ProcessOrderView.as_view(), name="orders-process"),
    path("stats/", StatsView.as_view(), name="stats"),
    path("payments/webhook/", PaymentWebhookView.as_view(), name="payments-webhook"),
    path("settings/", SettingsView.as_view(), name="settings"),
    path("settings/email/test/", EmailSettingsTestView.as_view(), name="settings-email-test"),
    path("settings/<str:section>/", SettingsSectionView.as_view(), name="settings-section"),
]
