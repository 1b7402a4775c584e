from django.urls import path

from .views import CarteraStatusView, CarteraSummaryView

urlpatterns = [
    path("cartera/", CarteraStatusView.as_view(), name="cartera-status"),
    path("cartera/status", CarteraStatusView.as_view(), name="cartera-status-action"),
    path("cartera/status/", CarteraStatusView.as_view(), name="cartera-status-action-trailing"),
    path("cxc/estado-cartera/summary", CarteraSummaryView.as_view(), name="cartera-summary"),
    path("cxc/estado-cartera/summary/", CarteraSummaryView.as_view(), name="cartera-summary-trailing"),
]
