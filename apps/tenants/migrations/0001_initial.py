# Initial schema for organizations

import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Organization',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('external_org_id', models.CharField(help_text='Organization id issued by the identity provider', max_length=255, unique=True)),
                ('name', models.CharField(default='My Organization', help_text='Display name', max_length=255)),
                ('slug', models.SlugField(help_text='URL-safe identifier', max_length=255)),
                ('enabled_modules', models.JSONField(blank=True, default=list, help_text='Module keys enabled for this organization')),
                ('onboarding_complete', models.BooleanField(default=False, help_text='Whether the organization has finished module setup')),
            ],
            options={
                'db_table': 'organizations',
                'ordering': ['-created_at'],
            },
        ),
    ]
