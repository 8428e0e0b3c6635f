from django.urls import path

from .views import admin_delete, admin_list, change_password, home, login_view, logout_view

urlpatterns = [
    path('', login_view, name='login'),
    path('logout/', logout_view, name='logout'),
    path('dashboard/', home, name='home'),
    path('change-password/', change_password, name='change_password'),
    path('admins/', admin_list, name='admin_list'),
    path('admins/<str:admin_id>/delete/', admin_delete, name='admin_delete'),
]
