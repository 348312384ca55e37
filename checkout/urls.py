from django.urls import path
from . import views

app_name = 'checkout'

urlpatterns = [
    path('', views.checkout_page, name='checkout'),
    path('contract/', views.contract_preview, name='contract'),
    path('next/', views.next_step, name='next'),
    path('previous/', views.previous_step, name='previous'),
    path('return-to-contract/', views.return_to_contract, name='return_to_contract'),
    path('contact/', views.update_contact, name='contact'),
    path('signature/', views.update_signature, name='signature'),
    path('payment-success/', views.payment_success, name='payment_success'),
    path('payment-error/', views.payment_error, name='payment_error'),
]
