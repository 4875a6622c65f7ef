from django.urls import path

from . import views


app_name = "arena"

urlpatterns = [
    path("battle", views.battle, name="battle"),
    path("characters", views.characters, name="characters"),
    path("leaderboard", views.leaderboard, name="leaderboard"),
    path("records", views.records, name="records"),
]
