from django.urls import include, path

urlpatterns = [
    path('', include('apps.core.users.urls')),
    path('students/', include('apps.core.students.urls')),
    path('settings/', include('apps.core.academics.urls')),
    path('employees/', include('apps.core.hr.urls')),
    path('fees/', include('apps.core.fees.urls')),
]
