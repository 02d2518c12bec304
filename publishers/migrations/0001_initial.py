import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Publisher',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('contact_name', models.CharField(blank=True, default='', max_length=255)),
                ('company_name', models.CharField(blank=True, default='', max_length=255)),
                ('phone', models.CharField(blank=True, default='', max_length=50)),
                ('account_status', models.CharField(choices=[('shadow', 'Shadow'), ('unclaimed', 'Unclaimed'), ('active', 'Active')], default='shadow', max_length=20)),
                ('source', models.CharField(choices=[('manyreach', 'ManyReach'), ('manual', 'Manual')], default='manyreach', max_length=20)),
                ('source_metadata', models.JSONField(blank=True, default=dict)),
                ('confidence_score', models.FloatField(blank=True, null=True)),
                ('invitation_token', models.CharField(blank=True, db_index=True, default='', max_length=64)),
                ('invitation_expires_at', models.DateTimeField(blank=True, null=True)),
                ('claimed_at', models.DateTimeField(blank=True, null=True)),
                ('shadow_data_migrated', models.BooleanField(default=False)),
                ('shadow_migration_completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'publishers',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Website',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('domain', models.CharField(max_length=255, unique=True)),
                ('domain_rating', models.IntegerField(blank=True, null=True)),
                ('total_traffic', models.IntegerField(blank=True, null=True)),
                ('niches', models.JSONField(blank=True, default=list)),
                ('source', models.CharField(default='manyreach', max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'websites',
                'ordering': ['domain'],
            },
        ),
        migrations.CreateModel(
            name='Offering',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('offering_type', models.CharField(choices=[('guest_post', 'Guest Post'), ('link_insertion', 'Link Insertion'), ('listicle_placement', 'Listicle Placement'), ('sponsored_review', 'Sponsored Review'), ('press_release', 'Press Release'), ('package_deal', 'Package Deal')], default='guest_post', max_length=30)),
                ('base_price', models.IntegerField(help_text='Price in minor currency units (cents)')),
                ('currency', models.CharField(default='USD', max_length=3)),
                ('turnaround_days', models.IntegerField(default=7)),
                ('is_active', models.BooleanField(default=False)),
                ('attributes', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('publisher', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offerings', to='publishers.publisher')),
                ('website', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='offerings', to='publishers.website')),
            ],
            options={
                'db_table': 'publisher_offerings',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='OfferingRelationship',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('relationship_type', models.CharField(default='contact', max_length=30)),
                ('verification_status', models.CharField(choices=[('claimed', 'Claimed'), ('verified', 'Verified')], default='claimed', max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('source_metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('publisher', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offering_relationships', to='publishers.publisher')),
                ('website', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offering_relationships', to='publishers.website')),
            ],
            options={
                'db_table': 'publisher_offering_relationships',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='offeringrelationship',
            constraint=models.UniqueConstraint(condition=models.Q(('is_active', True)), fields=('publisher', 'website'), name='uniq_active_offering_relationship'),
        ),
        migrations.CreateModel(
            name='ShadowRelationship',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('confidence', models.FloatField(default=0.0)),
                ('source', models.CharField(default='email_extraction', max_length=50)),
                ('extraction_method', models.CharField(default='llm', max_length=50)),
                ('verified', models.BooleanField(default=False)),
                ('guest_post_cost', models.DecimalField(blank=True, decimal_places=2, help_text='Extracted price in major units (dollars)', max_digits=10, null=True)),
                ('typical_turnaround_days', models.IntegerField(blank=True, null=True)),
                ('migration_status', models.CharField(blank=True, choices=[('pending', 'Pending'), ('migrating', 'Migrating'), ('migrated', 'Migrated'), ('skipped', 'Skipped'), ('failed', 'Failed')], default='pending', max_length=20, null=True)),
                ('migrated_at', models.DateTimeField(blank=True, null=True)),
                ('migration_notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('publisher', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='shadow_relationships', to='publishers.publisher')),
                ('website', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='shadow_relationships', to='publishers.website')),
            ],
            options={
                'db_table': 'publishers_shadow_relationships',
                'ordering': ['created_at'],
                'unique_together': {('publisher', 'website')},
            },
        ),
        migrations.AddIndex(
            model_name='shadowrelationship',
            index=models.Index(fields=['migration_status', 'migrated_at'], name='shadow_rel_status_idx'),
        ),
        migrations.CreateModel(
            name='ShadowRelationshipArchive',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('original_id', models.BigIntegerField(db_index=True)),
                ('publisher_id', models.BigIntegerField(db_index=True)),
                ('website_id', models.BigIntegerField()),
                ('confidence', models.FloatField(default=0.0)),
                ('source', models.CharField(blank=True, default='', max_length=50)),
                ('extraction_method', models.CharField(blank=True, default='', max_length=50)),
                ('verified', models.BooleanField(default=False)),
                ('guest_post_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('typical_turnaround_days', models.IntegerField(blank=True, null=True)),
                ('migration_status', models.CharField(blank=True, default='', max_length=20)),
                ('migrated_at', models.DateTimeField(blank=True, null=True)),
                ('migration_notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField()),
                ('archived_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'publishers_shadow_relationships_archive',
                'ordering': ['-archived_at'],
            },
        ),
    ]
