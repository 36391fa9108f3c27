from django.db import migrations, models
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='TariffVersion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('status', models.CharField(choices=[('pending', 'Pending approval'), ('approved', 'Approved'), ('rejected', 'Rejected')], default='pending', max_length=16)),
                ('entity_type', models.CharField(blank=True, choices=[('corporate', 'Corporate client'), ('office', 'Office user')], default='', max_length=16)),
                ('entity_id', models.CharField(blank=True, default='', max_length=64)),
                ('effective_from', models.DateTimeField(default=django.utils.timezone.now)),
                ('dox_pricing', models.JSONField()),
                ('non_dox_surface_pricing', models.JSONField()),
                ('non_dox_air_pricing', models.JSONField()),
                ('priority_pricing', models.JSONField()),
                ('reverse_pricing', models.JSONField()),
                ('min_chargeable_weight', models.JSONField()),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'tariff_versions',
                'ordering': ['-effective_from', '-id'],
                'indexes': [models.Index(fields=['status', 'entity_type', 'entity_id', '-effective_from'], name='tariff_lookup_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(models.Q(('entity_id', ''), ('entity_type', '')), models.Q(models.Q(('entity_type', ''), _negated=True), models.Q(('entity_id', ''), _negated=True)), _connector='OR'), name='tariff_entity_both_or_neither')],
            },
        ),
    ]
