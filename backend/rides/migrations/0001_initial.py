import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


USER_TYPE_CHOICES = [('passenger', 'Passenger'), ('driver', 'Driver')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('drivers', '0001_initial'),
        ('passengers', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_address', models.TextField()),
                ('to_address', models.TextField()),
                ('suggested_price', models.DecimalField(decimal_places=2, max_digits=8)),
                ('final_price', models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('negotiating', 'Negotiating'), ('accepted', 'Accepted'), ('in_progress', 'In progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('accepted_at', models.DateTimeField(blank=True, null=True)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('cancellation_reason', models.TextField(blank=True, null=True)),
                ('accepted_driver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='accepted_orders', to='drivers.driver')),
                ('passenger', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='orders', to='passengers.passenger')),
            ],
            options={
                'db_table': 'orders',
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='DriverOffer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('offered_price', models.DecimalField(decimal_places=2, max_digits=8)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('rejected', 'Rejected'), ('counter_offered', 'Counter offered')], default='pending', max_length=20)),
                ('message', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('driver', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='offers', to='drivers.driver')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offers', to='rides.order')),
            ],
            options={
                'db_table': 'driver_offers',
                'ordering': ['created_at', 'id'],
                'constraints': [models.UniqueConstraint(fields=('order', 'driver'), name='unique_order_driver_offer')],
            },
        ),
        migrations.CreateModel(
            name='PriceNegotiation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_user_type', models.CharField(choices=USER_TYPE_CHOICES, max_length=10)),
                ('from_user_id', models.BigIntegerField()),
                ('to_user_type', models.CharField(choices=USER_TYPE_CHOICES, max_length=10)),
                ('to_user_id', models.BigIntegerField()),
                ('proposed_price', models.DecimalField(decimal_places=2, max_digits=8)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('rejected', 'Rejected')], default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='negotiations', to='rides.order')),
            ],
            options={
                'db_table': 'price_negotiations',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Rating',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_user_type', models.CharField(choices=USER_TYPE_CHOICES, max_length=10)),
                ('from_user_id', models.BigIntegerField()),
                ('to_user_type', models.CharField(choices=USER_TYPE_CHOICES, max_length=10)),
                ('to_user_id', models.BigIntegerField()),
                ('rating', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('comment', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='ratings', to='rides.order')),
            ],
            options={
                'db_table': 'ratings',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['to_user_type', 'to_user_id'], name='ratings_target_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('order', 'from_user_type', 'from_user_id'), name='unique_rating_per_order_author'),
                    models.CheckConstraint(condition=models.Q(('rating__gte', 1), ('rating__lte', 5)), name='rating_between_1_and_5'),
                ],
            },
        ),
    ]
