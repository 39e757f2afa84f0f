from django.urls import path
from . import views

app_name = 'ledger'

urlpatterns = [
    # GET /leaderboard?limit=&page=   - Ranked list
    path('leaderboard', views.leaderboard_list, name='leaderboard'),

    # GET /leaderboard/user/{userId}  - One user's rank and tier
    path('leaderboard/user/<str:user_ref>', views.leaderboard_user, name='leaderboard-user'),

    # GET /users/{userId}             - Tier record
    path('users/<str:user_ref>', views.user_detail, name='user-detail'),
]
