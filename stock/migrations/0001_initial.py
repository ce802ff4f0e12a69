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
            name='StockMovement',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('movement_type', models.CharField(choices=[('RECEIPT', 'Receipt'), ('ISSUE', 'Issue'), ('TRANSFER', 'Transfer'), ('ADJUSTMENT', 'Adjustment'), ('CONSUMPTION', 'Consumption')], db_index=True, max_length=12, verbose_name='movement type')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=18, verbose_name='quantity')),
                ('transfer_group', models.UUIDField(blank=True, db_index=True, null=True, verbose_name='transfer group')),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True, verbose_name='unit cost')),
                ('reference_id', models.CharField(blank=True, help_text='Identifier of the source record (work order, request, ...)', max_length=64, verbose_name='reference ID')),
                ('reference_type', models.CharField(blank=True, help_text='Kind of source record, e.g. maintenance_request', max_length=100, verbose_name='reference type')),
                ('notes', models.TextField(blank=True, verbose_name='notes')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='created at')),
                ('counter_location', models.ForeignKey(blank=True, help_text='Other side of a transfer', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='+', to='locations.location', verbose_name='counter location')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='created by')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='catalog.item', verbose_name='item')),
                ('location', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='locations.location', verbose_name='location')),
            ],
            options={
                'verbose_name': 'stock movement',
                'verbose_name_plural': 'stock movements',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['item', 'location', 'created_at'], name='stock_item_loc_created_idx'),
                    models.Index(fields=['reference_type', 'reference_id'], name='stock_reference_idx'),
                    models.Index(fields=['created_by', 'created_at'], name='stock_created_by_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quantity', 0), _negated=True), name='stock_movement_nonzero_quantity'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockBalance',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('quantity', models.DecimalField(decimal_places=3, default=0, max_digits=18, verbose_name='quantity')),
                ('version', models.PositiveBigIntegerField(default=0, verbose_name='version')),
                ('last_movement_at', models.DateTimeField(blank=True, null=True, verbose_name='last movement at')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='balances', to='catalog.item', verbose_name='item')),
                ('location', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='balances', to='locations.location', verbose_name='location')),
            ],
            options={
                'verbose_name': 'stock balance',
                'verbose_name_plural': 'stock balances',
                'ordering': ['item', 'location'],
                'constraints': [
                    models.UniqueConstraint(fields=('item', 'location'), name='unique_balance_per_item_location'),
                ],
            },
        ),
    ]
