from django.urls import path, re_path
from . import views

REPORT_NAMES = r'(?P<report_name>performance-metrics|supplier-distribution|order-fulfillment|delivery-performance)'

urlpatterns = [
    re_path(rf'^reports/{REPORT_NAMES}/$', views.report_detail, name='report-detail'),
    re_path(rf'^reports/{REPORT_NAMES}/export/$', views.report_export, name='report-export'),
    path('reports/dashboard/', views.dashboard_summary, name='report-dashboard'),
    path('reports/dashboard/delivery-dates/', views.dashboard_delivery_dates, name='report-dashboard-delivery-dates'),
    path('reports/dashboard/top-customers/', views.dashboard_top_customers, name='report-dashboard-top-customers'),
]
