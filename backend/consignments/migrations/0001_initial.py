from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('pricing', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='RangeAssignment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entity_type', models.CharField(choices=[('corporate', 'Corporate client'), ('office', 'Office user')], max_length=16)),
                ('entity_id', models.CharField(max_length=64)),
                ('assigned_to_name', models.CharField(blank=True, default='', max_length=200)),
                ('start_number', models.BigIntegerField()),
                ('end_number', models.BigIntegerField()),
                ('total_numbers', models.PositiveIntegerField(editable=False)),
                ('assigned_by', models.CharField(blank=True, default='', max_length=150)),
                ('assigned_at', models.DateTimeField(auto_now_add=True)),
                ('is_active', models.BooleanField(default=True)),
                ('notes', models.CharField(blank=True, default='', max_length=500)),
            ],
            options={
                'db_table': 'consignment_range_assignments',
                'ordering': ['start_number'],
                'indexes': [
                    models.Index(fields=['entity_type', 'entity_id', 'is_active', 'start_number'], name='range_entity_active_idx'),
                    models.Index(fields=['start_number', 'end_number'], name='range_bounds_idx'),
                ],
                'constraints': [models.CheckConstraint(condition=models.Q(('start_number__lte', models.F('end_number'))), name='range_start_lte_end')],
            },
        ),
        migrations.CreateModel(
            name='ConsignmentUsage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entity_type', models.CharField(choices=[('corporate', 'Corporate client'), ('office', 'Office user')], max_length=16)),
                ('entity_id', models.CharField(max_length=64)),
                ('consignment_number', models.BigIntegerField()),
                ('booking_reference', models.CharField(max_length=64)),
                ('booking_data', models.JSONField(blank=True, default=dict)),
                ('price_breakdown', models.JSONField(blank=True, default=dict)),
                ('freight_charges', models.DecimalField(decimal_places=6, default=0, max_digits=18)),
                ('total_amount', models.DecimalField(decimal_places=6, default=0, max_digits=18)),
                ('payment_type', models.CharField(choices=[('FP', 'Freight Paid'), ('TP', 'To Pay')], default='FP', max_length=2)),
                ('status', models.CharField(choices=[('reserved', 'Reserved'), ('active', 'Active'), ('cancelled', 'Cancelled'), ('completed', 'Completed')], default='active', max_length=16)),
                ('payment_status', models.CharField(choices=[('unpaid', 'Unpaid'), ('paid', 'Paid'), ('invoiced', 'Invoiced')], default='unpaid', max_length=16)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('range_assignment', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='usages', to='consignments.rangeassignment')),
                ('tariff_version', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='usages', to='pricing.tariffversion')),
            ],
            options={
                'db_table': 'consignment_usage',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['entity_type', 'entity_id', '-created_at'], name='usage_entity_created_idx'),
                    models.Index(fields=['consignment_number'], name='usage_number_idx'),
                    models.Index(fields=['booking_reference'], name='usage_booking_ref_idx'),
                ],
                'constraints': [models.UniqueConstraint(fields=('entity_type', 'entity_id', 'consignment_number'), name='uniq_usage_entity_consignment_number')],
            },
        ),
    ]
