# Generated migration for lab app - lab requests

import uuid
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('authz', '0001_initial'),
        ('clinical', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='LabRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('test_name', models.CharField(max_length=255)),
                ('price', models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ('status', models.CharField(
                    choices=[
                        ('pending_payment', 'Pending Payment'),
                        ('paid', 'Paid'),
                        ('processing', 'Processing'),
                        ('completed', 'Completed')
                    ],
                    default='pending_payment',
                    max_length=20
                )),
                ('technician_notes', models.TextField(blank=True)),
                ('structured_results', models.JSONField(blank=True, default=list)),
                ('result_files', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('doctor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='lab_requests', to='authz.doctor')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='lab_requests', to='clinical.patient')),
                ('visit', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='lab_requests', to='clinical.visit')),
            ],
            options={
                'verbose_name': 'Lab Request',
                'verbose_name_plural': 'Lab Requests',
                'db_table': 'lab_request',
            },
        ),
        migrations.AddIndex(
            model_name='labrequest',
            index=models.Index(fields=['status', 'created_at'], name='idx_lab_request_status'),
        ),
        migrations.AddIndex(
            model_name='labrequest',
            index=models.Index(fields=['visit'], name='idx_lab_request_visit'),
        ),
        migrations.AddIndex(
            model_name='labrequest',
            index=models.Index(fields=['completed_at'], name='idx_lab_request_completed'),
        ),
    ]
