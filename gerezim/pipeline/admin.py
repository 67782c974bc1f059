from django.contrib import admin
from .models import Opportunity


@admin.register(Opportunity)
class OpportunityAdmin(admin.ModelAdmin):
    list_display = ['title', 'category', 'value', 'pipeline_stage', 'status', 'contact', 'product', 'created_at']
    list_filter = ['pipeline_stage', 'status', 'category']
    search_fields = ['title', 'notes', 'contact__name', 'product__title']
    raw_id_fields = ['contact', 'product']
    ordering = ['-created_at']
