"""
Initial migration for batchledger models.
"""

from decimal import Decimal
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    """Create batchledger models: Location, Product, Inventory, Batch, Movement, Reservation, InventoryAlert."""

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Location',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.SlugField(help_text='Identificador único (ej: almacen, cocina)', unique=True, verbose_name='Código')),
                ('name', models.CharField(max_length=100, verbose_name='Nombre')),
                ('is_active', models.BooleanField(default=True, verbose_name='Activa')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadatos')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Ubicación',
                'verbose_name_plural': 'Ubicaciones',
                'ordering': ['code'],
            },
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(max_length=50, unique=True, verbose_name='SKU')),
                ('name', models.CharField(max_length=200, verbose_name='Nombre')),
                ('barcode', models.CharField(blank=True, db_index=True, default='', max_length=64, verbose_name='Código de barras')),
                ('category', models.CharField(blank=True, db_index=True, default='', max_length=100, verbose_name='Categoría')),
                ('base_unit', models.CharField(help_text='Código de la unidad en que se guarda el stock (ej: kg, l, unit)', max_length=20, verbose_name='Unidad base')),
                ('base_unit_name', models.CharField(blank=True, default='', max_length=50, verbose_name='Nombre de la unidad base')),
                ('minimum_stock', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=18, verbose_name='Stock mínimo')),
                ('reorder_point', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=18, verbose_name='Punto de reorden')),
                ('is_active', models.BooleanField(default=True, verbose_name='Activo')),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Producto',
                'verbose_name_plural': 'Productos',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='AlternativeUnit',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=20, verbose_name='Código')),
                ('name', models.CharField(blank=True, default='', max_length=50, verbose_name='Nombre')),
                ('conversion_factor', models.DecimalField(decimal_places=6, help_text='Unidades base por cada unidad alternativa (ej: caja = 12)', max_digits=18, verbose_name='Factor de conversión')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alternative_units', to='batchledger.product', verbose_name='Producto')),
            ],
            options={
                'verbose_name': 'Unidad alternativa',
                'verbose_name_plural': 'Unidades alternativas',
                'constraints': [
                    models.UniqueConstraint(fields=('product', 'code'), name='unique_alternative_unit_per_product'),
                    models.CheckConstraint(condition=models.Q(('conversion_factor__gt', 0)), name='alternative_unit_factor_positive'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Inventory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('available', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=18, verbose_name='Disponible')),
                ('reserved', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=18, verbose_name='Reservado')),
                ('quarantine', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=18, verbose_name='Cuarentena')),
                ('unit', models.CharField(max_length=20, verbose_name='Unidad')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True)),
                ('last_updated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Actualizado por')),
                ('location', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='inventories', to='batchledger.location', verbose_name='Ubicación')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='inventories', to='batchledger.product', verbose_name='Producto')),
            ],
            options={
                'verbose_name': 'Inventario',
                'verbose_name_plural': 'Inventarios',
                'indexes': [
                    models.Index(fields=['location', 'product'], name='inventory_location_product_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('product', 'location'), name='unique_inventory_product_location'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Batch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('batch_id', models.CharField(help_text='Se conserva al transferir entre ubicaciones', max_length=50, verbose_name='Lote')),
                ('quantity', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=18, verbose_name='Cantidad')),
                ('reserved_quantity', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=18, verbose_name='Cantidad reservada')),
                ('cost_per_unit', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=14, verbose_name='Costo unitario')),
                ('received_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Fecha de recepción')),
                ('expiry_date', models.DateTimeField(blank=True, db_index=True, null=True, verbose_name='Fecha de caducidad')),
                ('status', models.CharField(choices=[('available', 'Disponible'), ('quarantine', 'Cuarentena'), ('depleted', 'Agotado')], db_index=True, default='available', max_length=20, verbose_name='Estado')),
                ('supplier', models.CharField(blank=True, default='', max_length=200, verbose_name='Proveedor')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('inventory', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='batches', to='batchledger.inventory', verbose_name='Inventario')),
            ],
            options={
                'verbose_name': 'Lote',
                'verbose_name_plural': 'Lotes',
                'ordering': ['received_at'],
                'indexes': [
                    models.Index(fields=['batch_id'], name='batch_batch_id_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('inventory', 'batch_id'), name='unique_batch_per_inventory'),
                    models.CheckConstraint(condition=models.Q(('quantity__gte', 0), ('reserved_quantity__gte', 0)), name='batch_quantities_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Movement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('movement_id', models.CharField(max_length=40, unique=True, verbose_name='Folio')),
                ('movement_type', models.CharField(choices=[('ENTRADA', 'Entrada'), ('SALIDA', 'Salida'), ('TRANSFERENCIA', 'Transferencia'), ('AJUSTE', 'Ajuste')], db_index=True, max_length=20, verbose_name='Tipo')),
                ('quantity', models.DecimalField(decimal_places=6, max_digits=18, verbose_name='Cantidad')),
                ('unit', models.CharField(max_length=20, verbose_name='Unidad')),
                ('batch_id', models.CharField(blank=True, default='', max_length=50, verbose_name='Lote')),
                ('reason', models.CharField(help_text='Obligatorio. Ej: "Compra OC-118", "Consumo para evento"', max_length=255, verbose_name='Motivo')),
                ('unit_cost', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=14, verbose_name='Costo unitario')),
                ('total_cost', models.DecimalField(decimal_places=6, default=Decimal('0'), max_digits=18, verbose_name='Costo total')),
                ('currency', models.CharField(default='MXN', max_length=3, verbose_name='Moneda')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Notas')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadatos')),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Fecha/Hora')),
                ('from_location', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='movements_out', to='batchledger.location', verbose_name='Origen')),
                ('performed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Realizado por')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='batchledger.product', verbose_name='Producto')),
                ('to_location', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='movements_in', to='batchledger.location', verbose_name='Destino')),
            ],
            options={
                'verbose_name': 'Movimiento',
                'verbose_name_plural': 'Movimientos',
                'ordering': ['created_at', 'pk'],
                'indexes': [
                    models.Index(fields=['product', 'created_at'], name='movement_product_created_idx'),
                    models.Index(fields=['from_location', 'created_at'], name='movement_from_created_idx'),
                    models.Index(fields=['to_location', 'created_at'], name='movement_to_created_idx'),
                    models.Index(fields=['movement_type', 'created_at'], name='movement_type_created_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quantity__gte', 0)), name='movement_quantity_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Reservation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=6, max_digits=18, verbose_name='Cantidad')),
                ('reserved_for', models.CharField(blank=True, default='', help_text='Pedido, evento o cliente', max_length=200, verbose_name='Reservado para')),
                ('status', models.CharField(choices=[('active', 'Activa'), ('released', 'Liberada')], db_index=True, default='active', max_length=20, verbose_name='Estado')),
                ('expires_at', models.DateTimeField(blank=True, db_index=True, help_text='Si sigue activa en esta fecha, se libera automáticamente', null=True, verbose_name='Expira')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('resolved_at', models.DateTimeField(blank=True, null=True, verbose_name='Resuelta')),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Creada por')),
                ('inventory', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reservations', to='batchledger.inventory', verbose_name='Inventario')),
            ],
            options={
                'verbose_name': 'Reserva',
                'verbose_name_plural': 'Reservas',
                'indexes': [
                    models.Index(fields=['status', 'expires_at'], name='reservation_status_expiry_idx'),
                    models.Index(fields=['inventory', 'status'], name='reservation_inventory_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InventoryAlert',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('alert_id', models.CharField(max_length=40, unique=True, verbose_name='Folio')),
                ('alert_type', models.CharField(choices=[('LOW_STOCK', 'Stock bajo'), ('REORDER_POINT', 'Punto de reorden'), ('EXPIRY_WARNING', 'Próximo a caducar'), ('EXPIRED_PRODUCT', 'Producto caducado')], db_index=True, max_length=20, verbose_name='Tipo')),
                ('priority', models.CharField(choices=[('LOW', 'Baja'), ('MEDIUM', 'Media'), ('HIGH', 'Alta'), ('CRITICAL', 'Crítica')], max_length=10, verbose_name='Prioridad')),
                ('batch_id', models.CharField(blank=True, default='', max_length=50, verbose_name='Lote')),
                ('title', models.CharField(max_length=200, verbose_name='Título')),
                ('message', models.TextField(verbose_name='Mensaje')),
                ('threshold', models.DecimalField(blank=True, decimal_places=6, max_digits=18, null=True, verbose_name='Umbral')),
                ('current_value', models.DecimalField(blank=True, decimal_places=6, max_digits=18, null=True, verbose_name='Valor actual')),
                ('unit', models.CharField(blank=True, default='', max_length=20, verbose_name='Unidad')),
                ('expiry_date', models.DateTimeField(blank=True, null=True, verbose_name='Caducidad')),
                ('is_active', models.BooleanField(default=True, verbose_name='Activa')),
                ('is_acknowledged', models.BooleanField(default=False, verbose_name='Atendida')),
                ('acknowledged_at', models.DateTimeField(blank=True, null=True, verbose_name='Atendida el')),
                ('resolution_notes', models.TextField(blank=True, default='', verbose_name='Resolución')),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='Creada')),
                ('acknowledged_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Atendida por')),
                ('location', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alerts', to='batchledger.location', verbose_name='Ubicación')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='alerts', to='batchledger.product', verbose_name='Producto')),
            ],
            options={
                'verbose_name': 'Alerta de inventario',
                'verbose_name_plural': 'Alertas de inventario',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['product', 'location', 'is_active'], name='alert_product_location_idx'),
                    models.Index(fields=['alert_type', 'is_active'], name='alert_type_active_idx'),
                ],
            },
        ),
    ]
