from django.conf import settings
from django.urls import path
from django.views.decorators.csrf import csrf_exempt

from graphene_django.views import GraphQLView

graphql_view = csrf_exempt(GraphQLView.as_view(graphiql=settings.DEBUG))

urlpatterns = [
    path('', graphql_view),
    path('graphql/', graphql_view, name='graphql'),
]
