import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('entity_type', models.CharField(choices=[('MATERIAL', 'Raw material'), ('PRODUCTION_BATCH', 'Production batch')], db_index=True, max_length=20, verbose_name='entity type')),
                ('entity_id', models.UUIDField(db_index=True, help_text='UUID of material or production batch; FK resolved in application layer', verbose_name='entity ID')),
                ('movement_type', models.CharField(choices=[('PURCHASE', 'Purchase'), ('CONSUMED', 'Consumed'), ('ADJUSTMENT', 'Adjustment'), ('WASTAGE', 'Wastage')], db_index=True, max_length=16, verbose_name='movement type')),
                ('direction', models.CharField(blank=True, choices=[('INCREASE', 'Increase'), ('DECREASE', 'Decrease')], default='', max_length=8, verbose_name='direction')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0.001'))], verbose_name='quantity')),
                ('occurred_on', models.DateField(verbose_name='date')),
                ('reference', models.CharField(blank=True, default='', help_text='Free text: supplier, batch, recipient', max_length=255, verbose_name='reference')),
                ('notes', models.TextField(blank=True, default='', verbose_name='notes')),
                ('reference_id', models.UUIDField(blank=True, help_text='Source record: ProductionBatch, MaterialIssue', null=True, verbose_name='reference ID')),
                ('reference_type', models.CharField(blank=True, default='', help_text='Model name of source record', max_length=100, verbose_name='reference type')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='created at')),
                ('updated_at', models.DateTimeField(blank=True, null=True, verbose_name='updated at')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='created by')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='updated by')),
            ],
            options={
                'verbose_name': 'stock movement',
                'verbose_name_plural': 'stock movements',
                'ordering': ['-occurred_on', '-created_at'],
                'indexes': [
                    models.Index(fields=['entity_type', 'entity_id', 'occurred_on'], name='stock_entity_date_idx'),
                    models.Index(fields=['reference_type', 'reference_id'], name='stock_reference_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(quantity__gt=0),
                        name='stock_movement_quantity_positive',
                    ),
                    models.CheckConstraint(
                        condition=(
                            models.Q(movement_type='ADJUSTMENT', direction__in=['INCREASE', 'DECREASE'])
                            | (~models.Q(movement_type='ADJUSTMENT') & models.Q(direction=''))
                        ),
                        name='stock_movement_direction_iff_adjustment',
                    ),
                ],
            },
        ),
    ]
