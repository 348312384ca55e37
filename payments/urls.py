from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    path('discount/apply/', views.apply_discount, name='apply_discount'),
    path('discount/remove/', views.remove_discount, name='remove_discount'),
    path('discounts/', views.public_discounts, name='public_discounts'),
]
