from django.db import models
from django.conf import settings


class AuditTrail(models.Model):
    """Who did what to which record in the budget workflow"""
    ACTION_CHOICES = (
        ('CREATE', 'Created'),
        ('UPDATE', 'Updated'),
        ('DELETE', 'Deleted'),
        ('SUBMIT', 'Submitted for Approval'),
        ('APPROVE', 'Approved'),
        ('REJECT', 'Rejected'),
        ('UPLOAD', 'Document Uploaded'),
    )

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True)
    action = models.CharField(max_length=30, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    record_id = models.CharField(max_length=100, null=True)
    detail = models.TextField()
    ip_address = models.GenericIPAddressField(null=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']
        verbose_name = "Audit Trail"
        verbose_name_plural = "Audit Trails"

    def __str__(self):
        return f"{self.user} {self.action} {self.model_name}:{self.record_id}"
