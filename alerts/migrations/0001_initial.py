import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('locations', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('kind', models.CharField(choices=[('low_stock', 'Low stock'), ('out_of_stock', 'Out of stock'), ('over_stock', 'Over stock'), ('expiry_warning', 'Expiry warning')], db_index=True, max_length=20, verbose_name='kind')),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical')], max_length=10, verbose_name='priority')),
                ('priority_rank', models.PositiveSmallIntegerField(default=1, editable=False, verbose_name='priority rank')),
                ('message', models.TextField(verbose_name='message')),
                ('is_acknowledged', models.BooleanField(default=False, verbose_name='acknowledged')),
                ('acknowledged_at', models.DateTimeField(blank=True, null=True, verbose_name='acknowledged at')),
                ('is_resolved', models.BooleanField(db_index=True, default=False, verbose_name='resolved')),
                ('resolved_at', models.DateTimeField(blank=True, null=True, verbose_name='resolved at')),
                ('acknowledged_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='acknowledged by')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='notifications', to='catalog.item', verbose_name='item')),
                ('location', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='notifications', to='locations.location', verbose_name='location')),
            ],
            options={
                'verbose_name': 'notification',
                'verbose_name_plural': 'notifications',
                'ordering': ['-priority_rank', '-created_at'],
                'indexes': [
                    models.Index(fields=['is_resolved', 'priority_rank'], name='notif_open_priority_idx'),
                    models.Index(fields=['item', 'location', 'kind'], name='notif_item_loc_kind_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('is_resolved', False), ('location__isnull', False)), fields=('item', 'location', 'kind'), name='unique_open_notification_per_pair'),
                    models.UniqueConstraint(condition=models.Q(('is_resolved', False), ('location__isnull', True)), fields=('item', 'kind'), name='unique_open_notification_per_item'),
                ],
            },
        ),
    ]
