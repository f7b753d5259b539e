from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from .models import User

@admin.register(User)
class CustomUserAdmin(UserAdmin):
    list_display = ('username', 'email', 'role', 'college', 'first_name', 'last_name', 'is_staff', 'verified')
    list_filter = ('role', 'is_staff', 'is_superuser', 'verified', 'is_active')
    search_fields = ('username', 'email', 'first_name', 'last_name', 'college')
    fieldsets = UserAdmin.fieldsets + (
        ('Custom Fields', {'fields': ('role', 'phone', 'college', 'verified')}),
    )
    add_fieldsets = UserAdmin.add_fieldsets + (
        ('Custom Fields', {'fields': ('role', 'phone', 'college')}),
    )
