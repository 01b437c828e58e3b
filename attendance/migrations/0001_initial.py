import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('academics', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='AttendanceRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('recorded_by', models.PositiveBigIntegerField()),
                ('recorded_by_role', models.CharField(choices=[('admin', 'Admin'), ('proctor', 'Proctor'), ('teacher', 'Teacher'), ('student', 'Student')], max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('present', models.BooleanField(default=False)),
                ('notes', models.TextField(blank=True, null=True)),
                ('schedule_slot', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='attendance_records', to='academics.scheduleslot')),
            ],
            options={
                'ordering': ['-date'],
                'abstract': False,
                'indexes': [models.Index(fields=['date'], name='attendance_record_date_idx')],
                'constraints': [models.UniqueConstraint(fields=('schedule_slot', 'date'), name='unique_attendance_per_slot_date')],
            },
        ),
        migrations.CreateModel(
            name='ActivityRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('recorded_by', models.PositiveBigIntegerField()),
                ('recorded_by_role', models.CharField(choices=[('admin', 'Admin'), ('proctor', 'Proctor'), ('teacher', 'Teacher'), ('student', 'Student')], max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('topic', models.CharField(max_length=255)),
                ('activities', models.TextField()),
                ('homework', models.TextField(blank=True, null=True)),
                ('schedule_slot', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='activity_records', to='academics.scheduleslot')),
            ],
            options={
                'ordering': ['-date'],
                'abstract': False,
                'indexes': [models.Index(fields=['date'], name='activity_record_date_idx')],
                'constraints': [models.UniqueConstraint(fields=('schedule_slot', 'date'), name='unique_activity_per_slot_date')],
            },
        ),
    ]
