"""
URL configuration for calls app.
"""
from django.urls import path
from calls.views import CallWebhookView, ReconciliationView

urlpatterns = [
    path('calls/', CallWebhookView.as_view(), name='call-webhook'),
    path('calls/reconcile/', ReconciliationView.as_view(), name='call-reconcile'),
]
