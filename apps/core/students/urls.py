from django.urls import path

from .views import student_create, student_delete, student_detail, student_list, student_update

urlpatterns = [
    path('', student_list, name='student_list'),
    path('add/', student_create, name='student_create'),
    path('<str:student_id>/', student_detail, name='student_detail'),
    path('<str:student_id>/edit/', student_update, name='student_update'),
    path('<str:student_id>/delete/', student_delete, name='student_delete'),
]
