# One CallRecord per conversation id

from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('calls', '0001_initial'),
    ]

    operations = [
        migrations.AddConstraint(
            model_name='callrecord',
            constraint=models.UniqueConstraint(
                condition=models.Q(external_conversation_id__isnull=False),
                fields=('external_conversation_id',),
                name='unique_call_record_per_conversation',
            ),
        ),
    ]
