"""
URL configuration for advisory_checkout project.
"""
from django.urls import path, include


urlpatterns = [
    path('cart/', include('cart.urls', namespace='cart')),
    path('payments/', include('payments.urls', namespace='payments')),
    path('checkout/', include('checkout.urls', namespace='checkout')),
]
