import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('locations', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Item',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='active')),
                ('deactivated_at', models.DateTimeField(blank=True, null=True, verbose_name='deactivated at')),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('code', models.CharField(help_text='Unique item code (e.g. SP-0042)', max_length=50, unique=True, verbose_name='code')),
                ('name', models.CharField(max_length=255, verbose_name='name')),
                ('description', models.TextField(blank=True, verbose_name='description')),
                ('category', models.CharField(choices=[('FOOD', 'Food'), ('BEVERAGE', 'Beverage'), ('CLEANING', 'Cleaning supplies'), ('LINEN', 'Linen'), ('SPARE_PART', 'Spare part'), ('CONSUMABLE', 'Consumable'), ('OFFICE', 'Office supplies'), ('OTHER', 'Other')], db_index=True, default='OTHER', max_length=12, verbose_name='category')),
                ('unit', models.CharField(help_text='e.g. pcs, kg, l, box', max_length=20, verbose_name='unit of measure')),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True, validators=[django.core.validators.MinValueValidator(0)], verbose_name='unit cost')),
                ('supplier_name', models.CharField(blank=True, max_length=255, verbose_name='supplier')),
                ('supplier_code', models.CharField(blank=True, max_length=100, verbose_name='supplier code')),
                ('expiry_date', models.DateField(blank=True, db_index=True, null=True, verbose_name='expiry date')),
                ('batch_number', models.CharField(blank=True, max_length=100, verbose_name='batch number')),
                ('allow_backorder', models.BooleanField(default=False, help_text='Allow issues and consumptions to drive the balance below zero', verbose_name='allow backorder')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='created by')),
                ('deactivated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='deactivated by')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='updated by')),
            ],
            options={
                'verbose_name': 'item',
                'verbose_name_plural': 'items',
                'ordering': ['code'],
                'indexes': [
                    models.Index(fields=['category', 'is_active'], name='item_category_active_idx'),
                    models.Index(fields=['is_active', 'expiry_date'], name='item_active_expiry_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockThreshold',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('min_level', models.DecimalField(decimal_places=3, default=0, max_digits=18, validators=[django.core.validators.MinValueValidator(0)], verbose_name='minimum level')),
                ('max_level', models.DecimalField(blank=True, decimal_places=3, max_digits=18, null=True, verbose_name='maximum level')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='created by')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='updated by')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='thresholds', to='catalog.item', verbose_name='item')),
                ('location', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='thresholds', to='locations.location', verbose_name='location')),
            ],
            options={
                'verbose_name': 'stock threshold',
                'verbose_name_plural': 'stock thresholds',
                'ordering': ['item', 'location'],
                'constraints': [
                    models.UniqueConstraint(fields=('item', 'location'), name='unique_threshold_per_item_location'),
                    models.CheckConstraint(condition=models.Q(('min_level__gte', 0)), name='threshold_min_non_negative'),
                    models.CheckConstraint(condition=models.Q(('max_level__isnull', True), ('max_level__gte', models.F('min_level')), _connector='OR'), name='threshold_min_lte_max'),
                ],
            },
        ),
    ]
