from django.db import models


# A plain user model rather than django.contrib.auth's: the front-end expects a 'name' field
# instead of 'username', and authentication is done with JWTs, not sessions.

class UserModel(models.Model):
    name = models.CharField(max_length=150)
    email = models.EmailField(unique=True)
    # bcrypt hash, see users.auth.hash_password()
    password = models.CharField(max_length=128)

    def __str__(self):
        return self.email
