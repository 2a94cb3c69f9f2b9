import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('inventory', '0001_initial'),
        ('stock', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ProductionBatch',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('unit', models.CharField(default='kg', max_length=20, verbose_name='unit')),
                ('initial_stock', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0'))], verbose_name='initial stock')),
                ('current_stock', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0'))], verbose_name='current stock')),
                ('reorder_level', models.DecimalField(blank=True, decimal_places=3, max_digits=14, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0'))], verbose_name='reorder level')),
                ('version', models.PositiveIntegerField(default=0, editable=False, verbose_name='version')),
                ('batch_code', models.CharField(max_length=32, unique=True, verbose_name='batch code')),
                ('production_date', models.DateField(db_index=True, verbose_name='production date')),
                ('expiry_date', models.DateField(blank=True, null=True, verbose_name='expiry date')),
                ('unit_cost', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0'))], verbose_name='unit cost')),
                ('selling_price', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0'))], verbose_name='selling price')),
                ('produced_by', models.CharField(blank=True, default='', max_length=255, verbose_name='produced by')),
                ('status', models.CharField(choices=[('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled')], db_index=True, default='COMPLETED', max_length=12, verbose_name='status')),
                ('notes', models.TextField(blank=True, default='', verbose_name='notes')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='created by')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='updated by')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='batches', to='inventory.product', verbose_name='product')),
            ],
            options={
                'verbose_name': 'production batch',
                'verbose_name_plural': 'production batches',
                'ordering': ['-production_date', '-created_at'],
            },
        ),
        migrations.CreateModel(
            name='BatchMaterial',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0.001'))], verbose_name='quantity')),
                ('cost', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0'))], verbose_name='cost')),
                ('supplier', models.CharField(blank=True, default='', max_length=255, verbose_name='supplier')),
                ('batch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='materials_used', to='production.productionbatch', verbose_name='batch')),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='inventory.material', verbose_name='material')),
                ('movement', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='stock.stockmovement', verbose_name='consumption movement')),
            ],
            options={
                'verbose_name': 'batch material',
                'verbose_name_plural': 'batch materials',
            },
        ),
        migrations.CreateModel(
            name='MaterialIssue',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('issue_date', models.DateField(db_index=True, verbose_name='issue date')),
                ('issued_to', models.CharField(max_length=255, verbose_name='issued to')),
                ('purpose', models.CharField(max_length=255, verbose_name='purpose')),
                ('department', models.CharField(choices=[('PRODUCTION', 'Production'), ('PACKAGING', 'Packaging'), ('MAINTENANCE', 'Maintenance'), ('QUALITY', 'Quality control'), ('ADMINISTRATION', 'Administration'), ('OTHER', 'Other')], db_index=True, max_length=16, verbose_name='department')),
                ('notes', models.TextField(blank=True, default='', verbose_name='notes')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='created by')),
                ('updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='updated by')),
            ],
            options={
                'verbose_name': 'material issue',
                'verbose_name_plural': 'material issues',
                'ordering': ['-issue_date', '-created_at'],
            },
        ),
        migrations.CreateModel(
            name='MaterialIssueItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=3, max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0.001'))], verbose_name='quantity')),
                ('issue', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='production.materialissue', verbose_name='issue')),
                ('material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='inventory.material', verbose_name='material')),
                ('movement', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='stock.stockmovement', verbose_name='issue movement')),
            ],
            options={
                'verbose_name': 'material issue item',
                'verbose_name_plural': 'material issue items',
            },
        ),
    ]
