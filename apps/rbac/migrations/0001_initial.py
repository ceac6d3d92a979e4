# Initial schema for members and audit logs

import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Member',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('external_user_id', models.CharField(db_index=True, help_text='User id issued by the identity provider', max_length=255)),
                ('role', models.CharField(choices=[('admin', 'Admin'), ('accountant', 'Accountant'), ('hr_manager', 'HR Manager'), ('sales_manager', 'Sales Manager'), ('employee', 'Employee')], default='employee', help_text='Role granting static capabilities', max_length=32)),
                ('allowed_modules', models.JSONField(blank=True, default=list, help_text='Module keys this member may use; empty means pending setup')),
                ('employee_number', models.CharField(help_text='EMP-000001 style number, unique per organization', max_length=20)),
                ('first_name', models.CharField(blank=True, max_length=150)),
                ('last_name', models.CharField(blank=True, max_length=150)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('position', models.CharField(blank=True, max_length=150)),
                ('status', models.CharField(choices=[('ACTIVE', 'Active'), ('TERMINATED', 'Terminated')], db_index=True, default='ACTIVE', max_length=20)),
                ('termination_date', models.DateField(blank=True, null=True)),
                ('deleted_by', models.CharField(blank=True, help_text='Who soft-deleted this member', max_length=255)),
                ('organization', models.ForeignKey(help_text='Organization this member belongs to', on_delete=django.db.models.deletion.PROTECT, related_name='members', to='tenants.organization')),
            ],
            options={
                'db_table': 'members',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('actor_id', models.CharField(help_text="External user id of the actor, or 'system'", max_length=255)),
                ('action', models.CharField(choices=[('CREATE', 'Create'), ('UPDATE', 'Update'), ('DELETE', 'Delete'), ('READ', 'Read')], db_index=True, max_length=10)),
                ('entity_type', models.CharField(db_index=True, max_length=100)),
                ('entity_id', models.CharField(db_index=True, max_length=255)),
                ('old_values', models.JSONField(blank=True, null=True)),
                ('new_values', models.JSONField(blank=True, null=True)),
                ('ip_address', models.CharField(default='unknown', max_length=64)),
                ('user_agent', models.TextField(default='unknown')),
                ('request_id', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, editable=False)),
                ('member', models.ForeignKey(blank=True, help_text='Member who performed the action (null for system actions)', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='audit_logs', to='rbac.member')),
                ('organization', models.ForeignKey(help_text='Organization this action belongs to', on_delete=django.db.models.deletion.PROTECT, related_name='audit_logs', to='tenants.organization')),
            ],
            options={
                'db_table': 'audit_logs',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='member',
            constraint=models.UniqueConstraint(condition=models.Q(('deleted_at__isnull', True)), fields=('organization', 'external_user_id'), name='uniq_active_member_per_org'),
        ),
        migrations.AddConstraint(
            model_name='member',
            constraint=models.UniqueConstraint(fields=('organization', 'employee_number'), name='uniq_employee_number_per_org'),
        ),
        migrations.AddIndex(
            model_name='member',
            index=models.Index(fields=['organization', 'external_user_id'], name='members_org_user_idx'),
        ),
        migrations.AddIndex(
            model_name='auditlog',
            index=models.Index(fields=['organization', 'created_at'], name='audit_org_created_idx'),
        ),
        migrations.AddIndex(
            model_name='auditlog',
            index=models.Index(fields=['entity_type', 'entity_id'], name='audit_entity_idx'),
        ),
        migrations.AddIndex(
            model_name='auditlog',
            index=models.Index(fields=['organization', 'action', 'created_at'], name='audit_org_action_idx'),
        ),
    ]
