from django.urls import path

from .views import (
    department_delete,
    department_list,
    department_update,
    speciality_delete,
    speciality_list,
    speciality_seats_update,
)

urlpatterns = [
    path('departments/', department_list, name='department_list'),
    path('departments/<str:department_id>/edit/', department_update, name='department_update'),
    path('departments/<str:department_id>/delete/', department_delete, name='department_delete'),

    path('specialities/', speciality_list, name='speciality_list'),
    path('specialities/<str:speciality_id>/seats/', speciality_seats_update, name='speciality_seats_update'),
    path('specialities/<str:speciality_id>/delete/', speciality_delete, name='speciality_delete'),
]
