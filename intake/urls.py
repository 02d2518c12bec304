from django.urls import path

from . import views

app_name = 'intake'

urlpatterns = [
    path('manyreach/<str:secret>/', views.ManyReachWebhookView.as_view(), name='manyreach-webhook'),
]
