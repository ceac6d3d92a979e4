"""
Django admin site configuration.
"""
from django.contrib import admin


admin.site.site_header = "Ledgerly Administration"
admin.site.site_title = "Ledgerly Admin"
admin.site.index_title = "Organizations, members and payments"
