from django.urls import path

from .views import (
    balance_fees,
    fee_add,
    fee_delete,
    fee_detail,
    fee_list,
    fee_pay,
    fee_receipt_pdf,
    upcoming_fees,
)

urlpatterns = [
    path('', fee_list, name='fee_list'),
    path('add/', fee_add, name='fee_add'),
    path('upcoming/', upcoming_fees, name='upcoming_fees'),
    path('balance/', balance_fees, name='balance_fees'),
    path('<str:fee_id>/', fee_detail, name='fee_detail'),
    path('<str:fee_id>/pay/', fee_pay, name='fee_pay'),
    path('<str:fee_id>/delete/', fee_delete, name='fee_delete'),
    path('<str:fee_id>/receipt/', fee_receipt_pdf, name='fee_receipt_pdf'),
]
