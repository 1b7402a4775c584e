from django.urls import path, include
from django.views.generic import RedirectView


urlpatterns = [
    path('', RedirectView.as_view(url='/api/cartera/', permanent=False)),
    path('api/', include("api.urls")),
]
