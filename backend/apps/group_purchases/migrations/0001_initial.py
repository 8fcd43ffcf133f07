import decimal
import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='GroupPurchase',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('description', models.TextField()),
                ('vendor_name', models.CharField(max_length=200)),
                ('vendor_contact', models.CharField(blank=True, max_length=200)),
                ('product_url', models.URLField(blank=True, max_length=500)),
                ('image_url', models.URLField(blank=True, max_length=500)),
                ('target_quantity', models.PositiveIntegerField(help_text='Quantity at which the purchase is fulfilled', validators=[django.core.validators.MinValueValidator(1)])),
                ('current_quantity', models.PositiveIntegerField(default=0, help_text='Sum of participant quantities')),
                ('unit_price', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(decimal.Decimal('0.01'))])),
                ('discounted_unit_price', models.DecimalField(blank=True, decimal_places=2, help_text='Price per unit once the target is reached', max_digits=12, null=True)),
                ('deadline', models.DateTimeField(blank=True, help_text='Leave empty for no time limit', null=True)),
                ('status', models.CharField(choices=[('open', 'Open for participants'), ('fulfilled', 'Target reached'), ('expired', 'Deadline passed'), ('cancelled', 'Cancelled by creator')], default='open', max_length=20)),
                ('version', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('creator', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='created_group_purchases', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Group Purchase',
                'verbose_name_plural': 'Group Purchases',
                'db_table': 'group_purchases',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'deadline'], name='group_purch_status_2f1c3a_idx'),
                    models.Index(fields=['creator', 'status'], name='group_purch_creator_8d0e41_idx'),
                    models.Index(fields=['created_at'], name='group_purch_created_5b7a92_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('target_quantity__gte', 1)), name='group_purchase_target_quantity_min'),
                    models.CheckConstraint(condition=models.Q(('current_quantity__gte', 0)), name='group_purchase_current_quantity_min'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Participant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('status', models.CharField(choices=[('interested', 'Interested'), ('committed', 'Committed'), ('paid', 'Paid')], default='committed', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('group_purchase', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='participants', to='group_purchases.grouppurchase')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='group_purchase_participations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Participant',
                'verbose_name_plural': 'Participants',
                'db_table': 'group_purchase_participants',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['user', 'created_at'], name='group_purch_user_id_c41d07_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('group_purchase', 'user'), name='unique_participant_per_group_purchase'),
                    models.CheckConstraint(condition=models.Q(('quantity__gte', 1)), name='participant_quantity_min'),
                ],
            },
        ),
        migrations.CreateModel(
            name='GroupPurchaseUpdate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('event_type', models.CharField(choices=[('created', 'Created'), ('joined', 'Participant joined'), ('left', 'Participant left'), ('quantity_changed', 'Participation changed'), ('status_change', 'Status changed')], max_length=20)),
                ('event_data', models.JSONField(default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('group_purchase', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='updates', to='group_purchases.grouppurchase')),
            ],
            options={
                'verbose_name': 'Group Purchase Update',
                'verbose_name_plural': 'Group Purchase Updates',
                'db_table': 'group_purchase_updates',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['group_purchase', 'created_at'], name='group_purch_group_p_9e3b16_idx'),
                    models.Index(fields=['event_type'], name='group_purch_event_t_a70c5d_idx'),
                ],
            },
        ),
    ]
