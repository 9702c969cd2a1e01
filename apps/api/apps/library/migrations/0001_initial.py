# Generated migration for library app - reference books

import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Book',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=500)),
                ('author', models.CharField(blank=True, max_length=255)),
                ('summary', models.TextField(blank=True)),
                ('category', models.CharField(blank=True, max_length=100)),
                ('content', models.TextField(blank=True)),
                ('file_type', models.CharField(choices=[('PDF', 'PDF'), ('TXT', 'Text'), ('WEB', 'Web'), ('MANUAL', 'Manual entry')], default='MANUAL', max_length=10)),
                ('source_url', models.URLField(blank=True, max_length=1000)),
                ('access_type', models.CharField(choices=[('FREE', 'Free'), ('PAID', 'Paid')], default='FREE', max_length=10)),
                ('is_placeholder', models.BooleanField(default=False)),
                ('date_added', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Book',
                'verbose_name_plural': 'Books',
                'db_table': 'book',
                'ordering': ['-date_added'],
            },
        ),
        migrations.AddIndex(
            model_name='book',
            index=models.Index(fields=['title'], name='idx_book_title'),
        ),
        migrations.AddIndex(
            model_name='book',
            index=models.Index(fields=['category'], name='idx_book_category'),
        ),
    ]
