from django.contrib.auth.hashers import check_password, make_password
from django.db import models


class AdminAccount(models.Model):
    """Operator login that can create characters and run maintenance."""

    ROLE_ADMIN = "admin"

    name = models.CharField(max_length=64, unique=True)
    password_hash = models.CharField(max_length=128)
    role = models.CharField(max_length=16, default=ROLE_ADMIN)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.name} ({self.role})"

    def set_password(self, raw_password: str) -> None:
        self.password_hash = make_password(raw_password)

    def check_password(self, raw_password: str) -> bool:
        return check_password(raw_password, self.password_hash)
