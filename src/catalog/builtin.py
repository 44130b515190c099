"""Built-in pipelines.

Service sources are opaque payloads written into the image by build
steps; the orchestrator never looks inside them.
"""

from src.pipeline.exceptions import PipelineValidationError
from src.pipeline.models import BuildDescriptor, HealthCheck, SetupStep

GRAFFITI_PACKAGE_JSON = """{
  "name": "graffiti-server",
  "version": "1.0.0",
  "main": "server.js",
  "dependencies": {
    "apollo-server-express": "^3.12.0",
    "express": "^4.18.0",
    "graphql": "^16.8.0"
  },
  "scripts": {
    "start": "node server.js"
  }
}
"""

GRAFFITI_SERVER_JS = """const express = require('express');
const { ApolloServer } = require('apollo-server-express');
const { typeDefs, resolvers } = require('./schema');

async function startServer() {
  const app = express();
  app.get('/health', (req, res) => res.json({ status: 'ok', uptime: process.uptime() }));

  const server = new ApolloServer({ typeDefs, resolvers, introspection: true });
  await server.start();
  server.applyMiddleware({ app, path: '/graphql' });

  const PORT = process.env.PORT || 4000;
  app.listen(PORT, () => {
    console.log('Graffiti GraphQL server ready at http://localhost:' + PORT + server.graphqlPath);
  });
}

startServer().catch(err => {
  console.error('Error starting server:', err);
  process.exit(1);
});
"""

GRAFFITI_SCHEMA_JS = """const { gql } = require('apollo-server-express');

const typeDefs = gql`
  type Context {
    id: ID!
    content: String!
  }

  type Query {
    contexts: [Context!]!
  }

  type Mutation {
    addContext(content: String!): Context!
  }
`;

const contexts = [];
let nextId = 1;

const resolvers = {
  Query: {
    contexts: () => contexts,
  },
  Mutation: {
    addContext: (_, { content }) => {
      const context = { id: String(nextId++), content };
      contexts.push(context);
      return context;
    },
  },
};

module.exports = { typeDefs, resolvers };
"""

NPM_CACHE = {"/root/.npm": "npm-cache"}


def runtime_check() -> BuildDescriptor:
    return BuildDescriptor(
        name="runtime-check",
        image="alpine:latest",
        entrypoint=("echo", "pipeline test passed"),
    )


def quick_start() -> BuildDescriptor:
    return BuildDescriptor(
        name="quick-start",
        image="alpine:latest",
        entrypoint=("sh", "-c", "echo 'pipeline runtime is working' && echo 'ready to build'"),
    )


def graffiti_server() -> BuildDescriptor:
    """Minimal GraphQL server, probed on its /health route."""
    return BuildDescriptor(
        name="graffiti-server",
        image="node:18-alpine",
        workdir="/app",
        env={"NODE_ENV": "development", "PORT": "4000"},
        steps=(
            SetupStep.write_file("/app/package.json", GRAFFITI_PACKAGE_JSON),
            SetupStep.write_file("/app/server.js", GRAFFITI_SERVER_JS),
            SetupStep.write_file("/app/schema.js", GRAFFITI_SCHEMA_JS),
            SetupStep.install("npm", "install", cache_mounts=NPM_CACHE),
        ),
        ports=frozenset({4000}),
        entrypoint=("npm", "start"),
        health_check=HealthCheck(port=4000, path="/health"),
    )


def development() -> BuildDescriptor:
    """Development environment with the toolchain used by the other services."""
    return BuildDescriptor(
        name="development",
        image="node:18-alpine",
        workdir="/workspace",
        env={"NODE_ENV": "development", "PIPELINE_DEV_MODE": "true"},
        steps=(
            SetupStep.install(
                "apk", "add", "--no-cache", "git", "curl", "bash", "python3", "py3-pip"
            ),
            SetupStep.install(
                "sh", "-c", "[ -f package.json ] && npm install || echo 'No package.json found yet'",
                cache_mounts={**NPM_CACHE, "/workspace/node_modules": "node_modules"},
            ),
        ),
        ports=frozenset({3000, 4000, 5000, 7000, 8000}),
        entrypoint=("sleep", "infinity"),
        test_command=("sh", "-c", "node --version && git --version && python3 --version"),
    )


PIPELINES = {
    "smoke": (runtime_check, quick_start),
    "services": (graffiti_server, development),
    "all": (runtime_check, quick_start, graffiti_server, development),
}


def available_pipelines() -> list[str]:
    return sorted(PIPELINES)


def get_pipeline(name: str) -> list[BuildDescriptor]:
    """Return fresh descriptors for a built-in pipeline.

    Raises:
        PipelineValidationError: If no pipeline has that name.
    """
    try:
        factories = PIPELINES[name]
    except KeyError:
        raise PipelineValidationError(
            f"Unknown pipeline {name!r}. Available: {', '.join(available_pipelines())}"
        ) from None
    return [factory() for factory in factories]
