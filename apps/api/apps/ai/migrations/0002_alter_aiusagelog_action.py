# Generated migration for ai app - prescription digitizing and timeline actions

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('ai', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='aiusagelog',
            name='action',
            field=models.CharField(
                choices=[
                    ('diagnosis', 'Diagnosis'),
                    ('ocr', 'Text Extraction'),
                    ('lab_parse', 'Lab Report Parsing'),
                    ('safety_check', 'Prescription Safety Check'),
                    ('prescription_scan', 'Prescription Digitizing'),
                    ('timeline', 'Timeline Analysis')
                ],
                max_length=20
            ),
        ),
    ]
