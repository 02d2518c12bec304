import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('publishers', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ProcessingLogEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('dedup_key', models.CharField(max_length=512)),
                ('campaign_id', models.CharField(blank=True, db_index=True, default='', max_length=100)),
                ('email_from', models.EmailField(db_index=True, max_length=320)),
                ('email_to', models.CharField(blank=True, default='', max_length=320)),
                ('email_subject', models.CharField(blank=True, default='', max_length=500)),
                ('message_id', models.CharField(blank=True, default='', max_length=255)),
                ('thread_id', models.CharField(blank=True, default='', max_length=255)),
                ('webhook_id', models.CharField(blank=True, default='', max_length=255)),
                ('source', models.CharField(choices=[('webhook', 'Webhook'), ('poller', 'Poller'), ('import', 'Import')], default='webhook', max_length=20)),
                ('raw_content', models.TextField(blank=True, default='')),
                ('html_content', models.TextField(blank=True, default='')),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('parsed_data', models.JSONField(blank=True, null=True)),
                ('confidence_score', models.FloatField(blank=True, null=True)),
                ('status', models.CharField(choices=[('processing', 'Processing'), ('parsed', 'Parsed'), ('needs_review', 'Needs Review'), ('failed', 'Failed')], db_index=True, default='processing', max_length=20)),
                ('error_message', models.TextField(blank=True, default='')),
                ('received_at', models.DateTimeField(auto_now_add=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('processing_duration_ms', models.IntegerField(blank=True, null=True)),
                ('shadow_publisher', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='processing_logs', to='publishers.publisher')),
            ],
            options={
                'db_table': 'intake_processing_logs',
                'ordering': ['-received_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='processinglogentry',
            constraint=models.UniqueConstraint(condition=models.Q(('status', 'failed'), _negated=True), fields=('dedup_key',), name='uniq_active_dedup_key'),
        ),
        migrations.CreateModel(
            name='SecurityAuditEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('ip_address', models.CharField(blank=True, default='', max_length=64)),
                ('user_agent', models.TextField(blank=True, default='')),
                ('provider', models.CharField(default='manyreach', max_length=50)),
                ('webhook_id', models.CharField(blank=True, default='', max_length=255)),
                ('secret_valid', models.BooleanField(default=False)),
                ('signature_valid', models.BooleanField(default=False)),
                ('timestamp_valid', models.BooleanField(default=False)),
                ('ip_allowed', models.BooleanField(default=False)),
                ('allowed', models.BooleanField(default=False)),
                ('rejection_reason', models.CharField(blank=True, max_length=255, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
            options={
                'db_table': 'intake_security_audit',
                'ordering': ['-created_at'],
                'verbose_name_plural': 'Security audit entries',
            },
        ),
        migrations.CreateModel(
            name='ReviewQueueEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('priority', models.IntegerField(default=50)),
                ('reason', models.CharField(choices=[('medium_confidence', 'Medium confidence'), ('low_confidence', 'Low confidence'), ('very_low_confidence', 'Very low confidence')], max_length=30)),
                ('suggested_actions', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('in_review', 'In Review'), ('approved', 'Approved'), ('rejected', 'Rejected')], default='pending', max_length=20)),
                ('auto_approve_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('log_entry', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='review_item', to='intake.processinglogentry')),
            ],
            options={
                'db_table': 'intake_review_queue',
                'ordering': ['-priority', 'created_at'],
            },
        ),
        migrations.CreateModel(
            name='AutomationLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(choices=[('shadow_publisher_created', 'Shadow publisher created'), ('publisher_updated', 'Publisher updated'), ('website_linked', 'Website linked'), ('offering_extracted', 'Offering extracted'), ('migration_completed', 'Migration completed'), ('migration_retried', 'Migration retried')], max_length=40)),
                ('previous_data', models.JSONField(blank=True, null=True)),
                ('new_data', models.JSONField(blank=True, null=True)),
                ('confidence', models.FloatField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('log_entry', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='automation_logs', to='intake.processinglogentry')),
                ('publisher', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='automation_logs', to='publishers.publisher')),
            ],
            options={
                'db_table': 'intake_automation_logs',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='PollerLease',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, unique=True)),
                ('holder', models.CharField(blank=True, default='', max_length=100)),
                ('acquired_at', models.DateTimeField(blank=True, null=True)),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'db_table': 'intake_poller_leases',
            },
        ),
    ]
